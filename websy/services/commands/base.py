"""Shared behaviour of command processors.

A processor splits into a pure ``classify`` step (user message → intents)
and an async ``execute`` step that performs at most one side effect per
intent and returns the block to append. ``process`` glues them together and
never raises: any error becomes an appended failure block.
"""

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from websy.core.exceptions import CollaboratorError, WebsyException
from websy.models.commands import Intent, Matched, MissingParams, NoMatch

logger = logging.getLogger(__name__)

BLOCK_SEPARATOR = "\n\n"
MAX_CAUSE_CHARS = 200


def keyword_pattern(keywords: Iterable[str]) -> re.Pattern[str]:
    """Case-insensitive pattern matching any keyword at a word start."""
    alternatives = "|".join(re.escape(k) for k in sorted(keywords, key=len, reverse=True))
    return re.compile(rf"(?<!\w)(?:{alternatives})", re.IGNORECASE)


def render_block(title: str, lines: Iterable[str]) -> str:
    """Render an appended markdown block with a ``###`` heading."""
    body = "\n".join(lines)
    return f"{BLOCK_SEPARATOR}### {title}\n\n{body}"


def short_cause(error: BaseException) -> str:
    """One-line, length-capped failure cause for user-visible blocks."""
    if isinstance(error, WebsyException):
        text = error.message
    else:
        text = str(error) or type(error).__name__
    text = " ".join(text.split())
    return text[:MAX_CAUSE_CHARS]


class CommandProcessor(ABC):
    """Base class for answer post-processors."""

    #: Short name used in logs.
    name: str = "command"
    #: Collaborator name used in ``CollaboratorError``.
    service: str = "service"

    @abstractmethod
    def classify(self, user_message: str) -> list[Intent]:
        """Detect intents in the user message; pure."""

    @abstractmethod
    async def execute(self, params: Any, *, actor_id: str) -> str:
        """Perform the side effect for a matched intent and return its block."""

    @abstractmethod
    def render_missing(self, intent: MissingParams) -> str:
        """Guidance block listing the fields the user must supply."""

    @abstractmethod
    def render_failure(self, params: Any, cause: str) -> str:
        """Failure block for a matched intent whose execution failed."""

    async def process(self, answer: str, user_message: str, *, actor_id: str = "system") -> str:
        """Append the blocks produced for ``user_message`` to ``answer``.

        Returns:
            ``answer`` followed by zero or more blocks; ``answer`` itself is
            never modified.
        """
        try:
            intents = self.classify(user_message)
        except Exception as e:
            logger.warning(
                "Command classification failed", extra={"processor": self.name}, exc_info=True
            )
            return answer + self.render_failure(None, short_cause(e))

        for intent in intents:
            answer += await self._handle(intent, actor_id)
        return answer

    async def _handle(self, intent: Intent, actor_id: str) -> str:
        if isinstance(intent, NoMatch):
            return ""
        if isinstance(intent, MissingParams):
            logger.info(
                "Command missing parameters",
                extra={"processor": self.name, "command": intent.command, "fields": intent.fields},
            )
            return self.render_missing(intent)
        if isinstance(intent, Matched):
            try:
                block = await self.execute(intent.params, actor_id=actor_id)
            except Exception as e:
                logger.warning(
                    "Command execution failed", extra={"processor": self.name}, exc_info=True
                )
                return self.render_failure(intent.params, short_cause(e))
            logger.info("Command executed", extra={"processor": self.name})
            return block
        return ""

    async def _call(self, coro: Any) -> Any:
        """Await a collaborator call, wrapping failures as ``CollaboratorError``."""
        try:
            return await coro
        except CollaboratorError:
            raise
        except Exception as e:
            raise CollaboratorError(self.service, short_cause(e)) from e
