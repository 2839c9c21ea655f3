"""Send one chat turn to the provider with bounded credential failover.

Rate-limited attempts rotate to the next credential and retry the same
prompt; the retry loop is capped at the pool size, and the key pool reports
exhaustion once rotation would wrap back to the first credential. Every other
failure is recorded and raised without retrying.
"""

import logging

from websy.core.exceptions import ConfigurationError, ExhaustionError, ProviderError, ValidationError
from websy.core.key_pool import KeyPoolManager
from websy.core.llm import GeminiClient
from websy.models.chat import PromptContext

logger = logging.getLogger(__name__)


class RequestDispatcher:
    """Drives provider calls using the pool's active credential."""

    def __init__(self, key_pool: KeyPoolManager, client: GeminiClient) -> None:
        self._key_pool = key_pool
        self._client = client

    async def dispatch(self, prompt: PromptContext) -> str:
        """Return the provider's answer for ``prompt``.

        Raises:
            ValidationError: If the current user message is empty.
            ConfigurationError: If the pool has no credentials.
            ExhaustionError: If every remaining credential is rate limited.
            ProviderError: Any non rate-limit failure, raised on first occurrence.
        """
        if not prompt.user_message.strip():
            raise ValidationError("The message cannot be empty", field="message")
        if not self._key_pool.initialized or self._key_pool.size == 0:
            raise ConfigurationError("No provider API keys available")

        if self._key_pool.reset_if_due():
            logger.info("Key pool reset interval elapsed, starting from the first key")

        contents = prompt.to_provider()
        pool_size = self._key_pool.size
        last_error: ProviderError | None = None

        # One initial attempt plus at most pool_size - 1 rotations.
        for attempt in range(pool_size):
            index = self._key_pool.active_index
            logger.info(
                "Sending message to provider",
                extra={"slot": index + 1, "attempt": attempt + 1, "pool_size": pool_size},
            )
            try:
                answer = await self._client.generate_content(self._key_pool.active_key, contents)
            except ProviderError as e:
                self._key_pool.record_failure(index, e)
                if not e.is_rate_limit:
                    raise
                last_error = e
                switch = self._key_pool.switch_to_next()
                if not switch.ok:
                    raise ExhaustionError(pool_size) from e
                continue

            self._key_pool.record_success(index)
            return answer

        raise ExhaustionError(pool_size) from last_error
