"""Contracts of the external collaborators the orchestrator calls into.

Implementations live outside this package (database summarizer, memory
store, calendar, reporting and project services); only the call shapes are
fixed here.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from websy.models.chat import MessageAnalysis, RelevantContext
from websy.models.commands import (
    CalendarEvent,
    PhaseRecord,
    Project,
    ReportData,
    ReportPeriod,
    TaskRecord,
)


@runtime_checkable
class DatabaseContextProvider(Protocol):
    async def get_snapshot(self) -> dict[str, Any]:
        """Counts and summaries of business data (never raw rows)."""
        ...


@runtime_checkable
class MessageAnalysisProvider(Protocol):
    async def analyze(
        self,
        message: str,
        history: Sequence[str],
        user_profile: dict[str, Any] | None = None,
        project_context: dict[str, Any] | None = None,
    ) -> MessageAnalysis: ...


@runtime_checkable
class MemoryStore(Protocol):
    async def get_relevant_context(self, message: str) -> RelevantContext: ...

    async def get_user_profile(self) -> dict[str, Any] | None: ...

    async def save(
        self,
        conversation_id: str,
        summary: str,
        topics: Sequence[str],
        preferences: dict[str, Any],
    ) -> None: ...

    async def update_profile(self, partial: dict[str, Any]) -> None: ...


@runtime_checkable
class CalendarService(Protocol):
    @property
    def is_authenticated(self) -> bool: ...

    @property
    def account_email(self) -> str | None: ...

    async def create_meeting(self, title: str, start: datetime, end: datetime) -> CalendarEvent: ...


@runtime_checkable
class ReportService(Protocol):
    async def generate_data(self, period: ReportPeriod) -> ReportData: ...

    async def to_document(self, data: ReportData, filename: str) -> str:
        """Render and emit the printable report; returns the emitted name."""
        ...

    async def to_table(self, data: ReportData, filename: str) -> str:
        """Render and emit the tabular export; returns the emitted name."""
        ...


@runtime_checkable
class ProjectService(Protocol):
    async def search(self, name_fragment: str) -> list[Project]: ...

    async def create_task(
        self, project_id: str, fields: dict[str, Any], actor_id: str
    ) -> TaskRecord: ...

    async def create_phase(
        self, project_id: str, fields: dict[str, Any], actor_id: str
    ) -> PhaseRecord: ...

    async def next_phase_order(self, project_id: str) -> int: ...
