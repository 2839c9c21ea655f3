"""Models for chat turns, attachments and the assembled prompt."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from websy.models.key_pool import PoolTelemetry


class ChatMessage(BaseModel):
    """One prior message of the conversation."""

    message: str = Field(..., description="Message text")
    is_ai: bool = Field(False, description="True when the assistant wrote it")
    id: str | None = None
    timestamp: datetime | None = None


class Attachment(BaseModel):
    """A file sent with the current user turn.

    Images carry base64 ``data`` with a ``mime_type``; text-like files carry
    their decoded ``content``.
    """

    type: Literal["image", "file"]
    name: str = "attachment"
    mime_type: str | None = None
    data: str | None = Field(None, description="Base64 payload for images")
    content: str | None = Field(None, description="Extracted text for files")


class MessageAnalysis(BaseModel):
    """Summary of what the user message is about."""

    key_topics: list[str] = Field(default_factory=list)
    user_preferences: dict[str, Any] = Field(default_factory=dict)
    context_summary: str = ""
    suggested_actions: list[str] = Field(default_factory=list)
    knowledge_gaps: list[str] = Field(default_factory=list)


class MemoryEntry(BaseModel):
    """A prior-conversation memory returned by the memory store."""

    context_summary: str
    key_topics: list[str] = Field(default_factory=list)


class KnowledgeEntry(BaseModel):
    """A knowledge-base article returned by the memory store."""

    title: str
    content: str = ""


class RelevantContext(BaseModel):
    """Memories and knowledge judged relevant to the current message."""

    memories: list[MemoryEntry] = Field(default_factory=list)
    knowledge: list[KnowledgeEntry] = Field(default_factory=list)


class ChatResult(BaseModel):
    """Final answer of one turn plus pool telemetry."""

    text: str
    telemetry: PoolTelemetry


class PartKind(str, Enum):
    """Kinds of prompt content parts."""

    TEXT = "text"
    INLINE_DATA = "inline_data"
    CONTEXT = "context"


@dataclass
class PromptPart:
    """One content part of a prompt turn.

    ``CONTEXT`` parts are structured text blocks (analysis, memories,
    knowledge, database snapshot) identified by ``label``.
    """

    kind: PartKind
    text: str = ""
    mime_type: str | None = None
    data: str | None = None
    label: str | None = None

    @classmethod
    def of_text(cls, text: str) -> "PromptPart":
        return cls(kind=PartKind.TEXT, text=text)

    @classmethod
    def of_context(cls, label: str, text: str) -> "PromptPart":
        return cls(kind=PartKind.CONTEXT, text=text, label=label)

    @classmethod
    def of_inline(cls, mime_type: str, data: str) -> "PromptPart":
        return cls(kind=PartKind.INLINE_DATA, mime_type=mime_type, data=data)

    def to_provider(self) -> dict[str, Any]:
        """Render as a provider content part."""
        if self.kind is PartKind.INLINE_DATA:
            return {"inline_data": {"mime_type": self.mime_type, "data": self.data}}
        return {"text": self.text}


@dataclass
class PromptTurn:
    """A role-tagged list of content parts."""

    role: Literal["user", "model"]
    parts: list[PromptPart] = field(default_factory=list)

    def to_provider(self) -> dict[str, Any]:
        return {"role": self.role, "parts": [p.to_provider() for p in self.parts]}


@dataclass
class PromptContext:
    """Ordered turns for one provider call.

    Layout: one context turn, then the trailing history, then the current
    user turn (text first, attachments after).
    """

    turns: list[PromptTurn] = field(default_factory=list)

    @property
    def context_turn(self) -> PromptTurn | None:
        return self.turns[0] if self.turns else None

    @property
    def history_turns(self) -> list[PromptTurn]:
        return self.turns[1:-1]

    @property
    def current_turn(self) -> PromptTurn | None:
        return self.turns[-1] if len(self.turns) >= 2 else None

    @property
    def user_message(self) -> str:
        """Text of the current user turn (first part), empty if absent."""
        turn = self.current_turn
        if turn is None or not turn.parts or turn.parts[0].kind is not PartKind.TEXT:
            return ""
        return turn.parts[0].text

    def to_provider(self) -> list[dict[str, Any]]:
        return [turn.to_provider() for turn in self.turns]
