"""Rotating pool of provider API keys.

The manager owns one ``PoolState`` and is the only code that mutates it.
Each mutation builds the next state from a copy, persists it through the
``KeyPoolStore`` and only then swaps it in, so callers never observe a state
that failed to persist. No ``await`` happens inside a mutation: on a single
event loop a classify-then-rotate sequence cannot interleave with another
coroutine's mutation.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from websy.core.exceptions import ConfigurationError, ProviderError
from websy.core.logging_config import mask_key
from websy.db.key_pool_store import KeyPoolStore
from websy.models.key_pool import Credential, CredentialStatus, PoolState, PoolTelemetry

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DEFAULT_RESET_INTERVAL_HOURS = 24.0
DEFAULT_ESTIMATED_QUOTA = 1500
EXHAUSTED_MESSAGE = "All provider API keys have reached their limit. Try again in a few hours."


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass(frozen=True)
class SwitchResult:
    """Outcome of ``KeyPoolManager.switch_to_next``."""

    ok: bool
    index: int
    reason: str | None = None


class KeyPoolManager:
    """In-memory state machine over the persisted key pool.

    Args:
        store: Durable storage for the pool record.
        clock: Returns the current time; injectable for tests.
        estimated_quota: Starting ``estimated_remaining`` for fresh credentials.
    """

    def __init__(
        self,
        store: KeyPoolStore,
        clock: Clock = utc_now,
        estimated_quota: int = DEFAULT_ESTIMATED_QUOTA,
    ) -> None:
        self._store = store
        self._clock = clock
        self._estimated_quota = estimated_quota
        self._reset_interval = timedelta(hours=DEFAULT_RESET_INTERVAL_HOURS)
        self._state: PoolState | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(
        self,
        configured_keys: Sequence[str],
        reset_interval_hours: float = DEFAULT_RESET_INTERVAL_HOURS,
    ) -> PoolState:
        """Build the pool from configured keys and any persisted record.

        A persisted record younger than the reset interval is reused: counters
        and flags follow each key by value, so externally reordered keys keep
        their history. An older (or missing, or unreadable) record is replaced
        by a fresh pool with the first credential active.

        Args:
            configured_keys: Provider secrets in rotation order.
            reset_interval_hours: Age after which the persisted record is discarded.

        Returns:
            Copy of the resulting state.

        Raises:
            ConfigurationError: If no keys are configured.
        """
        keys = [k for k in configured_keys if k]
        if not keys:
            raise ConfigurationError("No provider API keys are configured")
        if reset_interval_hours <= 0:
            raise ConfigurationError("Reset interval must be greater than zero")

        self._reset_interval = timedelta(hours=reset_interval_hours)
        now = self._now()
        persisted = self._store.load()

        if persisted is not None and persisted.credentials:
            last_reset = _as_utc(persisted.last_reset_at)
            if now - last_reset < self._reset_interval:
                state = self._merge(persisted, keys)
                logger.info(
                    "Key pool restored from persisted state",
                    extra={"pool_size": len(keys), "current_index": state.current_index},
                )
                self._commit(state)
                return self.state
            # Rebuilt pools never move the reset timestamp backwards.
            now = max(now, last_reset)
            logger.info("Persisted key pool older than reset interval, rebuilding")

        state = self._fresh(keys, now, version=persisted.version if persisted else 0)
        self._commit(state)
        logger.info("Key pool initialized", extra={"pool_size": len(keys)})
        return self.state

    def _fresh(self, keys: Sequence[str], now: datetime, version: int = 0) -> PoolState:
        return PoolState(
            current_index=0,
            credentials=[
                Credential(
                    key=key,
                    is_active=index == 0,
                    estimated_remaining=self._estimated_quota,
                )
                for index, key in enumerate(keys)
            ],
            total_requests=0,
            last_reset_at=now,
            version=version,
        )

    def _merge(self, persisted: PoolState, keys: Sequence[str]) -> PoolState:
        by_key = {c.key: c for c in persisted.credentials}
        current = persisted.current_index if persisted.current_index < len(keys) else 0

        credentials: list[Credential] = []
        for index, key in enumerate(keys):
            existing = by_key.get(key)
            if existing is not None:
                credential = existing.model_copy()
            else:
                credential = Credential(key=key, estimated_remaining=self._estimated_quota)
            credential.is_active = index == current
            credentials.append(credential)

        return PoolState(
            current_index=current,
            credentials=credentials,
            total_requests=sum(c.request_count for c in credentials),
            last_reset_at=_as_utc(persisted.last_reset_at),
            error=persisted.error,
            version=persisted.version,
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def record_success(self, index: int) -> None:
        """Count one successful request against credential ``index``."""
        state = self._copy()
        credential = self._credential(state, index)
        credential.last_used_at = self._now()
        credential.request_count += 1
        credential.estimated_remaining = max(0, credential.estimated_remaining - 1)
        credential.last_error = None
        state.total_requests += 1
        self._commit(state)
        logger.debug(
            "Request succeeded",
            extra={
                "slot": index + 1,
                "request_count": credential.request_count,
                "estimated_remaining": credential.estimated_remaining,
            },
        )

    def record_failure(self, index: int, error: ProviderError) -> None:
        """Record a classified failure against credential ``index``.

        Only rate-limit failures take the credential out of rotation; any
        other failure just stores the message.
        """
        state = self._copy()
        credential = self._credential(state, index)
        credential.last_error = error.message
        if error.is_rate_limit:
            credential.is_rate_limited = True
            credential.last_used_at = self._now()
        self._commit(state)
        logger.warning(
            "Provider call failed",
            extra={"slot": index + 1, "kind": error.kind.value},
        )

    def switch_to_next(self) -> SwitchResult:
        """Advance to the next credential in rotation order.

        Wrapping back to index 0 means every credential has been tried since
        the last reset: the pool is exhausted, ``error`` is set and
        ``current_index`` stays where it was.
        """
        state = self._copy()
        previous = state.current_index
        next_index = (previous + 1) % state.size

        if next_index == 0:
            state.error = EXHAUSTED_MESSAGE
            self._commit(state)
            logger.warning("All provider API keys are rate limited", extra={"pool_size": state.size})
            return SwitchResult(ok=False, index=previous, reason="exhausted")

        state.credentials[previous].is_active = False
        state.credentials[next_index].is_active = True
        state.current_index = next_index
        state.error = None
        self._commit(state)
        logger.info(
            "Switched provider API key",
            extra={"previous_slot": previous + 1, "slot": next_index + 1},
        )
        return SwitchResult(ok=True, index=next_index)

    def reset_all(self) -> PoolState:
        """Reactivate the first credential and clear every health flag."""
        state = self._copy()
        for index, credential in enumerate(state.credentials):
            credential.is_active = index == 0
            credential.is_rate_limited = False
            credential.last_error = None
        state.current_index = 0
        state.error = None
        state.last_reset_at = max(self._now(), _as_utc(state.last_reset_at))
        self._commit(state)
        logger.info("Key pool reset to first API key", extra={"pool_size": state.size})
        return self.state

    def reset_if_due(self) -> bool:
        """Run ``reset_all`` when the reset interval has elapsed.

        Returns:
            True if a reset happened.
        """
        state = self._require()
        if self._now() - _as_utc(state.last_reset_at) >= self._reset_interval:
            self.reset_all()
            return True
        return False

    def set_loading(self, loading: bool) -> None:
        """Flag an in-flight turn. Not persisted."""
        self._require().is_loading = loading

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def initialized(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> PoolState:
        """Deep copy of the current state."""
        return self._require().model_copy(deep=True)

    @property
    def size(self) -> int:
        return self._state.size if self._state is not None else 0

    @property
    def active_index(self) -> int:
        return self._require().current_index

    @property
    def active_key(self) -> str:
        state = self._require()
        return state.credentials[state.current_index].key

    @property
    def reset_interval_hours(self) -> float:
        return self._reset_interval.total_seconds() / 3600

    def get_status(self, index: int) -> Credential:
        return self._credential(self._require(), index).model_copy()

    def is_rate_limited(self, index: int) -> bool:
        state = self._require()
        if not 0 <= index < state.size:
            return False
        return state.credentials[index].is_rate_limited

    def telemetry(self) -> PoolTelemetry:
        """Snapshot for callers; secrets are masked."""
        state = self._require()
        return PoolTelemetry(
            current_index=state.current_index,
            credentials=[
                CredentialStatus(
                    slot=index + 1,
                    masked_key=mask_key(c.key),
                    is_active=c.is_active,
                    is_rate_limited=c.is_rate_limited,
                    last_used_at=c.last_used_at,
                    request_count=c.request_count,
                    estimated_remaining=c.estimated_remaining,
                    last_error=c.last_error,
                )
                for index, c in enumerate(state.credentials)
            ],
            total_requests=state.total_requests,
            last_reset_at=state.last_reset_at,
            is_loading=state.is_loading,
            error=state.error,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        return _as_utc(self._clock())

    def _require(self) -> PoolState:
        if self._state is None:
            raise ConfigurationError("Key pool has not been initialized")
        return self._state

    def _copy(self) -> PoolState:
        return self._require().model_copy(deep=True)

    @staticmethod
    def _credential(state: PoolState, index: int) -> Credential:
        if not 0 <= index < state.size:
            raise IndexError(f"Credential index {index} out of range for pool of {state.size}")
        return state.credentials[index]

    def _commit(self, state: PoolState) -> None:
        state.version += 1
        self._store.save(state)
        self._state = state
