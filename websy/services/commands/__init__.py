"""Command processors that append side-effect results to chat answers."""

from websy.services.commands.base import CommandProcessor
from websy.services.commands.calendar import CalendarCommandProcessor
from websy.services.commands.pipeline import CommandPipeline
from websy.services.commands.projects import TaskPhaseCommandProcessor
from websy.services.commands.reports import ReportCommandProcessor

__all__ = [
    "CalendarCommandProcessor",
    "CommandPipeline",
    "CommandProcessor",
    "ReportCommandProcessor",
    "TaskPhaseCommandProcessor",
]
