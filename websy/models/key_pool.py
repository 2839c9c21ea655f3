"""Pydantic models for the provider key pool and its persisted record."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )


class Credential(_CamelModel):
    """One provider API key and its health."""

    key: str = Field(..., description="Opaque provider secret")
    is_active: bool = Field(False, description="True for exactly one credential")
    is_rate_limited: bool = Field(False, description="Marked after a rate-limit response")
    last_used_at: datetime | None = Field(None, description="Last successful or limited use")
    request_count: int = Field(0, ge=0, description="Successful requests since rebuild")
    estimated_remaining: int = Field(0, ge=0, description="Heuristic remaining quota")
    last_error: str | None = Field(None, description="Last failure message")


class PoolState(_CamelModel):
    """Rotation state of the whole credential pool.

    Invariants maintained by ``KeyPoolManager``:
    - exactly one credential is active and it sits at ``current_index``;
    - ``total_requests`` equals the sum of ``request_count``;
    - ``last_reset_at`` never moves backwards.
    """

    current_index: int = Field(0, ge=0)
    credentials: list[Credential] = Field(default_factory=list)
    total_requests: int = Field(0, ge=0)
    last_reset_at: datetime
    is_loading: bool = False
    error: str | None = None
    version: int = Field(0, ge=0, description="Incremented on every save")

    @property
    def size(self) -> int:
        return len(self.credentials)

    def to_record(self) -> dict:
        """Serialize to the durable JSON record (camelCase, ISO-8601 timestamps)."""
        return self.model_dump(mode="json", by_alias=True, exclude={"is_loading"})

    @classmethod
    def from_record(cls, record: dict) -> "PoolState":
        """Rebuild a state from a durable record."""
        return cls.model_validate(record)


class CredentialStatus(_CamelModel):
    """Telemetry view of one credential with the secret masked."""

    slot: int = Field(..., description="1-based position in rotation order")
    masked_key: str
    is_active: bool
    is_rate_limited: bool
    last_used_at: datetime | None = None
    request_count: int = 0
    estimated_remaining: int = 0
    last_error: str | None = None


class PoolTelemetry(_CamelModel):
    """Pool health exposed to callers after each turn."""

    current_index: int
    credentials: list[CredentialStatus] = Field(default_factory=list)
    total_requests: int = 0
    last_reset_at: datetime | None = None
    is_loading: bool = False
    error: str | None = None
