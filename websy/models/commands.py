"""Command intents and the records exchanged with side-effect collaborators."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

P = TypeVar("P")


# ---------------------------------------------------------------------------
# Intent variants produced by command classification
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NoMatch:
    """No trigger matched; the answer is left untouched."""


@dataclass(frozen=True)
class Matched(Generic[P]):
    """Trigger matched and every parameter was resolved."""

    params: P


@dataclass(frozen=True)
class MissingParams:
    """Trigger matched but required fields could not be extracted."""

    command: str
    fields: tuple[str, ...]


Intent = NoMatch | Matched | MissingParams


class ReportPeriod(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class TaskPriority(str, Enum):
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class MeetingRequest:
    title: str
    start: datetime
    end: datetime


@dataclass(frozen=True)
class ReportRequest:
    period: ReportPeriod


@dataclass(frozen=True)
class TaskRequest:
    project_name: str
    title: str
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: date | None = None


@dataclass(frozen=True)
class PhaseRequest:
    project_name: str
    name: str
    description: str


# ---------------------------------------------------------------------------
# Collaborator records
# ---------------------------------------------------------------------------


class CalendarEvent(BaseModel):
    """Event created by the calendar collaborator."""

    id: str
    title: str | None = None


class Project(BaseModel):
    id: str
    name: str


class TaskRecord(BaseModel):
    id: str
    title: str
    priority: str = TaskPriority.MEDIUM.value
    status: str = "pending"
    due_date: date | None = None


class PhaseRecord(BaseModel):
    id: str
    name: str
    description: str = ""
    phase_order: int = 1
    status: str = "pending"


class TopPerformer(BaseModel):
    user_name: str
    completed_tasks: int = 0


class SkillGap(BaseModel):
    skill_name: str
    gap_percentage: float = 0.0


class ReportData(BaseModel):
    """Aggregated team activity for one report period."""

    total_tasks: int = 0
    completed_tasks: int = 0
    overdue_tasks: int = 0
    productivity_score: float = 0.0
    team_efficiency: float = 0.0
    top_performers: list[TopPerformer] = Field(default_factory=list)
    skill_gaps: list[SkillGap] = Field(default_factory=list)

    @property
    def completion_rate(self) -> float:
        """Completed over total, as a percentage."""
        if self.total_tasks <= 0:
            return 0.0
        return round(self.completed_tasks / self.total_tasks * 100, 1)
