"""Prompt assembly for one chat turn.

Turn layout sent to the provider, always in this order:
1. One context turn: static instructions, database snapshot, message
   analysis, relevant memories, relevant knowledge.
2. The last ``HISTORY_LIMIT`` history messages, oldest first.
3. The current user turn: message text, then attachments in input order.

Collaborators (database snapshot, analyzer, memory store) are best-effort:
a failing one is replaced by an empty placeholder block.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from websy.integrations.protocols import (
    DatabaseContextProvider,
    MemoryStore,
    MessageAnalysisProvider,
)
from websy.models.chat import (
    Attachment,
    ChatMessage,
    MessageAnalysis,
    PromptContext,
    PromptPart,
    PromptTurn,
    RelevantContext,
)

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 10
KNOWLEDGE_EXCERPT_CHARS = 200
DEFAULT_IMAGE_MIME = "image/jpeg"

SYSTEM_INSTRUCTIONS = """Eres Websy AI, un asistente especializado en administración de proyectos web y análisis de datos empresariales.

FUNCIONALIDADES REALES DISPONIBLES:
- Programar reuniones en Google Calendar
- Generar reportes semanales o mensuales (PDF y CSV)
- Crear tareas y fases en proyectos existentes
- Analizar datos, imágenes y archivos adjuntos

INSTRUCCIONES:
- Responde siempre en español, con formato Markdown.
- Estructura la respuesta en cuatro secciones: ### 🎯 Resumen Ejecutivo, ### 📋 Análisis Detallado, ### ⚡ Acciones Recomendadas, ### 💡 Conclusiones.
- Nunca afirmes que una acción ya se realizó; el sistema confirma las acciones reales al final de la respuesta.
- Usa datos concretos del contexto cuando estén disponibles y pide aclaraciones si faltan."""

# Block labels, in the order they appear inside the context turn
LABEL_INSTRUCTIONS = "instructions"
LABEL_DATABASE = "database_snapshot"
LABEL_ANALYSIS = "message_analysis"
LABEL_MEMORIES = "memories"
LABEL_KNOWLEDGE = "knowledge"


@dataclass
class AssembledPrompt:
    """Prompt plus the analysis it was built from (reused for memory saving)."""

    context: PromptContext
    analysis: MessageAnalysis
    relevant: RelevantContext = field(default_factory=RelevantContext)
    snapshot_available: bool = False


def render_snapshot(snapshot: dict[str, Any] | None) -> str:
    """Render a database snapshot as counts and summaries only.

    Nested mappings become indented lines, sequences are reduced to their
    length so raw rows never reach the prompt.
    """
    if not snapshot:
        return "CONTEXTO DE LA BASE DE DATOS:\nNo se pudo obtener contexto de la base de datos"

    lines = ["CONTEXTO DE LA BASE DE DATOS:"]

    def _render(mapping: dict[str, Any], indent: str) -> None:
        for key, value in mapping.items():
            if isinstance(value, dict):
                lines.append(f"{indent}- {key}:")
                _render(value, indent + "  ")
            elif isinstance(value, (list, tuple, set)):
                lines.append(f"{indent}- {key}: {len(value)} registros")
            else:
                lines.append(f"{indent}- {key}: {value}")

    _render(snapshot, "")
    return "\n".join(lines)


def render_analysis(analysis: MessageAnalysis) -> str:
    prefs = ", ".join(f"{k}={v}" for k, v in analysis.user_preferences.items()) or "ninguna"
    return "\n".join(
        [
            "ANÁLISIS CONTEXTUAL:",
            f"- Temas clave identificados: {', '.join(analysis.key_topics) or 'ninguno'}",
            f"- Preferencias del usuario: {prefs}",
            f"- Acciones sugeridas: {', '.join(analysis.suggested_actions) or 'ninguna'}",
            f"- Brechas de conocimiento: {', '.join(analysis.knowledge_gaps) or 'ninguna'}",
        ]
    )


def render_memories(relevant: RelevantContext) -> str:
    lines = ["CONTEXTO DE CONVERSACIONES ANTERIORES:"]
    lines += [f"- {m.context_summary}" for m in relevant.memories] or ["- (sin memorias)"]
    return "\n".join(lines)


def render_knowledge(relevant: RelevantContext) -> str:
    lines = ["BASE DE CONOCIMIENTO RELEVANTE:"]
    for entry in relevant.knowledge:
        excerpt = entry.content[:KNOWLEDGE_EXCERPT_CHARS]
        if len(entry.content) > KNOWLEDGE_EXCERPT_CHARS:
            excerpt += "..."
        lines.append(f"- {entry.title}: {excerpt}")
    if len(lines) == 1:
        lines.append("- (sin entradas)")
    return "\n".join(lines)


def attachment_parts(attachments: Sequence[Attachment]) -> list[PromptPart]:
    """Images become inline parts, text files become prefixed text parts."""
    parts: list[PromptPart] = []
    for attachment in attachments:
        if attachment.type == "image" and attachment.data:
            mime_type = attachment.mime_type or DEFAULT_IMAGE_MIME
            parts.append(PromptPart.of_inline(mime_type, attachment.data))
        elif attachment.type == "file" and attachment.content:
            parts.append(
                PromptPart.of_text(f"\n\n[Archivo adjunto: {attachment.name}]\n{attachment.content}")
            )
        else:
            logger.debug("Skipping empty attachment", extra={"attachment": attachment.name})
    return parts


def build_prompt(
    message: str,
    history: Sequence[ChatMessage],
    attachments: Sequence[Attachment],
    snapshot: dict[str, Any] | None,
    analysis: MessageAnalysis,
    relevant: RelevantContext,
    instructions: str = SYSTEM_INSTRUCTIONS,
    history_limit: int = HISTORY_LIMIT,
) -> PromptContext:
    """Build the prompt; same inputs always give the same turns."""
    context_turn = PromptTurn(
        role="user",
        parts=[
            PromptPart.of_context(LABEL_INSTRUCTIONS, instructions),
            PromptPart.of_context(LABEL_DATABASE, render_snapshot(snapshot)),
            PromptPart.of_context(LABEL_ANALYSIS, render_analysis(analysis)),
            PromptPart.of_context(LABEL_MEMORIES, render_memories(relevant)),
            PromptPart.of_context(LABEL_KNOWLEDGE, render_knowledge(relevant)),
        ],
    )

    recent = list(history)[-history_limit:] if history_limit > 0 else []
    history_turns = [
        PromptTurn(role="model" if m.is_ai else "user", parts=[PromptPart.of_text(m.message)])
        for m in recent
    ]

    current_turn = PromptTurn(
        role="user",
        parts=[PromptPart.of_text(message), *attachment_parts(attachments)],
    )
    return PromptContext(turns=[context_turn, *history_turns, current_turn])


class ContextAssembler:
    """Collects prompt inputs from collaborators and builds the prompt."""

    def __init__(
        self,
        database_context: DatabaseContextProvider | None = None,
        analyzer: MessageAnalysisProvider | None = None,
        memory_store: MemoryStore | None = None,
        instructions: str = SYSTEM_INSTRUCTIONS,
        history_limit: int = HISTORY_LIMIT,
    ) -> None:
        self._database_context = database_context
        self._analyzer = analyzer
        self._memory_store = memory_store
        self._instructions = instructions
        self._history_limit = history_limit

    async def assemble(
        self,
        message: str,
        history: Sequence[ChatMessage] = (),
        attachments: Sequence[Attachment] = (),
        context_type: str = "general",
        context_id: str | None = None,
    ) -> AssembledPrompt:
        """Gather collaborator data and build the prompt for one turn."""
        snapshot = await self._snapshot()
        profile = await self._user_profile()
        analysis = await self._analysis(message, history, profile, context_type, context_id)
        relevant = await self._relevant(message)

        context = build_prompt(
            message,
            history,
            attachments,
            snapshot,
            analysis,
            relevant,
            instructions=self._instructions,
            history_limit=self._history_limit,
        )
        return AssembledPrompt(
            context=context,
            analysis=analysis,
            relevant=relevant,
            snapshot_available=snapshot is not None,
        )

    async def _snapshot(self) -> dict[str, Any] | None:
        if self._database_context is None:
            return None
        try:
            return await self._database_context.get_snapshot()
        except Exception:
            logger.warning("Database context unavailable, continuing without it", exc_info=True)
            return None

    async def _user_profile(self) -> dict[str, Any] | None:
        if self._memory_store is None:
            return None
        try:
            return await self._memory_store.get_user_profile()
        except Exception:
            logger.warning("User profile unavailable", exc_info=True)
            return None

    async def _analysis(
        self,
        message: str,
        history: Sequence[ChatMessage],
        profile: dict[str, Any] | None,
        context_type: str,
        context_id: str | None,
    ) -> MessageAnalysis:
        if self._analyzer is None:
            return MessageAnalysis()
        project_context = {"id": context_id, "type": context_type} if context_id else None
        try:
            return await self._analyzer.analyze(
                message, [m.message for m in history], profile, project_context
            )
        except Exception:
            logger.warning("Message analysis failed, using empty analysis", exc_info=True)
            return MessageAnalysis()

    async def _relevant(self, message: str) -> RelevantContext:
        if self._memory_store is None:
            return RelevantContext()
        try:
            return await self._memory_store.get_relevant_context(message)
        except Exception:
            logger.warning("Memory context unavailable", exc_info=True)
            return RelevantContext()
