"""Models package for Websy AI."""
