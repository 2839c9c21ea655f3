"""Shared fixtures and collaborator fakes."""

from collections.abc import Callable, Sequence
from datetime import UTC, date, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock

import pytest

from websy.core.exceptions import PersistenceError, ProviderError, ProviderErrorKind
from websy.core.key_pool import KeyPoolManager
from websy.db.key_pool_store import InMemoryKeyPoolStore
from websy.models.chat import MessageAnalysis, PromptContext, RelevantContext
from websy.models.commands import CalendarEvent, Project, ReportData
from websy.services.context_assembler import build_prompt

START = datetime(2026, 10, 19, 9, 0, tzinfo=UTC)


class FakeClock:
    """Settable clock; call it to read the time."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class ScriptedProvider:
    """Stand-in for ``GeminiClient`` answering per API key.

    ``outcomes`` maps a key to an answer string or an exception to raise.
    """

    def __init__(self, outcomes: dict[str, str | Exception] | None = None) -> None:
        self.outcomes = outcomes or {}
        self.calls: list[str] = []
        self.contents: list[list[dict[str, Any]]] = []

    async def generate_content(self, api_key: str, contents: list[dict[str, Any]]) -> str:
        self.calls.append(api_key)
        self.contents.append(contents)
        outcome = self.outcomes.get(api_key, f"answer from {api_key}")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FailingStore(InMemoryKeyPoolStore):
    """In-memory store whose saves can be switched to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail = False

    def save(self, state: Any) -> None:
        if self.fail:
            raise PersistenceError("disk full")
        super().save(state)


class FakeCalendar:
    def __init__(self, authenticated: bool = True, email: str | None = "ana@example.com") -> None:
        self.is_authenticated = authenticated
        self.account_email = email
        self.create_meeting = AsyncMock(return_value=CalendarEvent(id="evt-1"))


class FakeMemoryStore:
    def __init__(self) -> None:
        self.get_relevant_context = AsyncMock(return_value=RelevantContext())
        self.get_user_profile = AsyncMock(return_value=None)
        self.save = AsyncMock()
        self.update_profile = AsyncMock()


def rate_limited() -> ProviderError:
    return ProviderError(ProviderErrorKind.RATE_LIMITED, "quota exceeded", provider_status=429)


def make_prompt(message: str = "hola") -> PromptContext:
    return build_prompt(message, [], [], None, MessageAnalysis(), RelevantContext())


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryKeyPoolStore:
    return InMemoryKeyPoolStore()


@pytest.fixture
def make_pool(
    store: InMemoryKeyPoolStore, clock: FakeClock
) -> Callable[[Sequence[str]], KeyPoolManager]:
    """Build an initialized pool over the shared store and clock."""

    def _make(keys: Sequence[str] = ("k0", "k1", "k2")) -> KeyPoolManager:
        manager = KeyPoolManager(store, clock=clock)
        manager.initialize(keys)
        return manager

    return _make


@pytest.fixture
def calendar() -> FakeCalendar:
    return FakeCalendar()


@pytest.fixture
def memory_store() -> FakeMemoryStore:
    return FakeMemoryStore()


@pytest.fixture
def report_service() -> AsyncMock:
    service = AsyncMock()
    service.generate_data.return_value = ReportData(total_tasks=10, completed_tasks=7)
    service.to_document.side_effect = lambda data, filename: filename
    service.to_table.side_effect = lambda data, filename: filename
    return service


@pytest.fixture
def project_service() -> AsyncMock:
    service = AsyncMock()
    service.search.return_value = [Project(id="p1", name="Atlas")]
    return service


@pytest.fixture
def today() -> date:
    return START.date()
