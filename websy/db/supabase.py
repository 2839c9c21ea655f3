"""Supabase client module for durable storage."""

import logging

from supabase import Client, create_client

from websy.core.config import get_settings
from websy.core.exceptions import ConfigurationError, PersistenceError

logger = logging.getLogger(__name__)


class SupabaseClient:
    """Singleton Supabase client for backend operations."""

    _client: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """Get or create the Supabase client singleton.

        Returns:
            Initialized Supabase client.

        Raises:
            ConfigurationError: If Supabase credentials are missing.
            PersistenceError: If client initialization fails.
        """
        if cls._client is None:
            settings = get_settings()
            if not settings.supabase_configured:
                raise ConfigurationError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required")
            try:
                cls._client = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_ROLE_KEY.get_secret_value(),
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                logger.exception("Failed to initialize Supabase client")
                raise PersistenceError(f"Failed to initialize database connection: {e}") from e
        return cls._client

    @classmethod
    def reset_client(cls) -> None:
        """Reset the client singleton (useful for testing)."""
        cls._client = None
