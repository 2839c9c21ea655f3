"""Contracts for the external collaborators the orchestrator consumes.

Implementations live in the embedding application.
"""

from websy.integrations.protocols import (
    CalendarService,
    DatabaseContextProvider,
    MemoryStore,
    MessageAnalysisProvider,
    ProjectService,
    ReportService,
)

__all__ = [
    "CalendarService",
    "DatabaseContextProvider",
    "MemoryStore",
    "MessageAnalysisProvider",
    "ProjectService",
    "ReportService",
]
