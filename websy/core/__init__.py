"""Core module for Websy AI configuration, errors and the key pool."""
