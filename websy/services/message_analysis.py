"""Keyword-based analysis of the user message.

Feeds the analysis block of the prompt and the conversation memory saved
after each turn. Regex and vocabulary lookups only, no model call.
"""

import logging
import re
from collections.abc import Sequence
from typing import Any

from websy.models.chat import MessageAnalysis

logger = logging.getLogger(__name__)

TECHNICAL_KEYWORDS = (
    "react", "nextjs", "typescript", "javascript", "node", "api", "database",
    "supabase", "authentication", "frontend", "backend", "deployment",
    "css", "tailwind", "ui", "component", "hook", "state", "props",
    "routing", "navigation", "form", "validation", "error", "loading",
    "responsive", "mobile", "desktop", "performance", "optimization",
    "seo", "accessibility", "testing", "debug", "fix", "bug", "issue",
    "project", "task", "feature", "requirement", "design", "layout",
    "integration", "calendar", "email", "notification", "automation",
    "dashboard", "admin", "user", "role", "permission", "security",
)  # fmt: skip

BUSINESS_KEYWORDS = (
    "cliente", "proyecto", "presupuesto", "timeline", "deadline",
    "reunión", "presentación", "propuesta", "contrato", "factura",
    "marketing", "ventas", "estrategia", "objetivo", "meta",
    "análisis", "reporte", "métrica", "kpi", "rendimiento",
    "equipo", "colaboración", "comunicación", "feedback", "revisión",
)  # fmt: skip

# Concepts that usually need more background when mentioned without a question
_GAP_CONCEPTS = ("api", "database", "authentication", "deployment")

_NAMED_ENTITY = re.compile(r"\b[A-Z][a-zA-Z0-9]*\b")
_EMAIL = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_URL = re.compile(r"https?://\S+")
_TIME = re.compile(r"\d{1,2}:\d{2}\s*(?:am|pm)?", re.IGNORECASE)


def _dedupe(items: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


class MessageAnalyzer:
    """Extracts topics, preferences, suggested actions and knowledge gaps."""

    async def analyze(
        self,
        message: str,
        history: Sequence[str],
        user_profile: dict[str, Any] | None = None,
        project_context: dict[str, Any] | None = None,
    ) -> MessageAnalysis:
        """Analyze one user message.

        Args:
            message: Current user message.
            history: Prior message texts, oldest first.
            user_profile: Stored profile merged under detected preferences.
            project_context: Optional ``{"id", "type"}`` of the active context.

        Returns:
            The analysis; empty lists when nothing was detected.
        """
        key_topics = self.extract_key_topics(message)
        if project_context and project_context.get("id"):
            scope = project_context.get("type", "context")
            key_topics = _dedupe([*key_topics, f"{scope}:{project_context['id']}"])
        return MessageAnalysis(
            key_topics=key_topics,
            user_preferences=self.extract_preferences(message, user_profile),
            context_summary=self.summarize(message, history, key_topics),
            suggested_actions=self.suggest_actions(key_topics, user_profile),
            knowledge_gaps=self.identify_knowledge_gaps(message, key_topics),
        )

    @staticmethod
    def extract_key_topics(message: str) -> list[str]:
        lowered = message.lower()
        topics = [kw for kw in TECHNICAL_KEYWORDS if kw in lowered]
        topics.extend(kw for kw in BUSINESS_KEYWORDS if kw in lowered)
        topics.extend(_NAMED_ENTITY.findall(message))
        topics.extend(_EMAIL.findall(message))
        topics.extend(_URL.findall(message))
        return _dedupe(topics)

    @staticmethod
    def extract_preferences(message: str, user_profile: dict[str, Any] | None) -> dict[str, Any]:
        preferences: dict[str, Any] = {}

        if "detallado" in message or "explicación completa" in message:
            preferences["communication_style"] = "detailed"
        elif "resumen" in message or "breve" in message:
            preferences["communication_style"] = "concise"

        tech: list[str] = []
        if "react" in message or "frontend" in message:
            tech.append("react")
        if "backend" in message or "api" in message:
            tech.append("backend")
        if tech:
            preferences["tech_preferences"] = tech

        if "código" in message or "ejemplo" in message:
            preferences["include_code_examples"] = True
        if "diagrama" in message or "visual" in message:
            preferences["include_diagrams"] = True

        times = _TIME.findall(message)
        if times:
            preferences["preferred_times"] = times

        if user_profile:
            return {**user_profile, **preferences}
        return preferences

    @staticmethod
    def summarize(message: str, history: Sequence[str], key_topics: Sequence[str]) -> str:
        recent = " ".join(history[-3:])
        return (
            f"Contexto: {message[:200]} | Temas: {', '.join(key_topics)} "
            f"| Historial reciente: {recent[:100]}"
        )

    @staticmethod
    def suggest_actions(key_topics: Sequence[str], user_profile: dict[str, Any] | None) -> list[str]:
        actions: list[str] = []
        if "error" in key_topics or "bug" in key_topics:
            actions += ["Revisar logs de error", "Proponer solución de debugging"]
        if "proyecto" in key_topics:
            actions += ["Crear estructura de proyecto", "Configurar herramientas de desarrollo"]
        if "reunión" in key_topics or "calendar" in key_topics:
            actions += ["Programar reunión en Google Calendar", "Enviar invitación por email"]
        if "reporte" in key_topics or "análisis" in key_topics:
            actions += ["Generar reporte automático", "Crear dashboard de métricas"]
        if user_profile and "frontend" in (user_profile.get("expertise_areas") or []):
            actions += ["Optimizar componentes React", "Mejorar rendimiento frontend"]
        return actions

    @staticmethod
    def identify_knowledge_gaps(message: str, key_topics: Sequence[str]) -> list[str]:
        gaps = [
            f"Más información sobre {concept}"
            for concept in _GAP_CONCEPTS
            if concept in key_topics and "cómo" not in message and "explicar" not in message
        ]
        if any(topic[:1].isupper() for topic in key_topics) and "detalles" not in message:
            gaps.append("Información detallada del proyecto")
        return gaps
