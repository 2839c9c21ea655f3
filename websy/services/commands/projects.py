"""Create project tasks and phases requested in chat."""

import logging
import re
from collections.abc import Callable
from datetime import date, datetime

from websy.integrations.protocols import ProjectService
from websy.models.commands import (
    Intent,
    Matched,
    MissingParams,
    NoMatch,
    PhaseRequest,
    Project,
    TaskPriority,
    TaskRequest,
)
from websy.services.commands.base import CommandProcessor, keyword_pattern, render_block
from websy.services.commands.dates import resolve_date

logger = logging.getLogger(__name__)

TASK_KEYWORDS = ("crear tarea", "agregar tarea", "nueva tarea", "tarea para", "asignar tarea", "task")
PHASE_KEYWORDS = ("crear fase", "agregar fase", "nueva fase", "fase para", "phase")

UNSET_DUE_DATE_LABEL = "No especificada"

# First rule that matches wins
_PRIORITY_RULES: tuple[tuple[re.Pattern[str], TaskPriority], ...] = (
    (re.compile(r"(?<!\w)(?:urgente|urgent)(?!\w)", re.IGNORECASE), TaskPriority.URGENT),
    (re.compile(r"(?<!\w)(?:alta|high)(?!\w)", re.IGNORECASE), TaskPriority.HIGH),
    (re.compile(r"(?<!\w)(?:baja|low)(?!\w)", re.IGNORECASE), TaskPriority.LOW),
)

_QUOTED = re.compile(r"[\"“”«]([^\"“”«»]+)[\"“”»]")
_PROJECT_NAMED = re.compile(r"proyecto[:\s]+([^,:]+)", re.IGNORECASE)
_PROJECT_FOR = re.compile(
    r"(?<!\w)para\s+(?!(?:mañana|hoy|tomorrow|today)(?!\w))(?:el\s+|la\s+)?([^,:]+)",
    re.IGNORECASE,
)
_AFTER_COLON = re.compile(r":\s*(.+)$", re.DOTALL)
_PHASE_NAME_INLINE = re.compile(r"fase\s+(?!para(?!\w))(.+?)\s+para(?!\w)", re.IGNORECASE)
_DESCRIPTION = re.compile(r"descripci[oó]n[:\s]+[\"“]?([^\"”]+)[\"”]?", re.IGNORECASE)

# Trailing qualifiers that belong to the command, not to the name
_TRAILING_QUALIFIERS = re.compile(
    r"\s+(?:(?:para|for)\s+(?:mañana|hoy|tomorrow|today)"
    r"|con\s+prioridad\s+\w+"
    r"|con\s+descripci[oó]n.*)\s*$",
    re.IGNORECASE,
)
_INNER_CUT = re.compile(r"\s+con\s+", re.IGNORECASE)


def _clean(text: str) -> str:
    text = text.strip().strip(".").strip()
    previous = None
    while previous != text:
        previous = text
        text = _TRAILING_QUALIFIERS.sub("", text).strip()
    return text


def extract_project_name(message: str) -> str | None:
    match = _PROJECT_NAMED.search(message) or _PROJECT_FOR.search(message)
    if not match:
        return None
    name = _INNER_CUT.split(match.group(1), maxsplit=1)[0]
    name = _clean(name)
    return name or None


def extract_title(message: str) -> str | None:
    quoted = _QUOTED.search(message)
    if quoted and quoted.group(1).strip():
        return quoted.group(1).strip()
    after = _AFTER_COLON.search(message)
    if after:
        return _clean(after.group(1)) or None
    return None


def extract_phase_name(message: str) -> str | None:
    title = extract_title(message)
    if title:
        return title
    inline = _PHASE_NAME_INLINE.search(message)
    if inline:
        return _clean(inline.group(1)) or None
    return None


def resolve_priority(message: str) -> TaskPriority:
    for pattern, priority in _PRIORITY_RULES:
        if pattern.search(message):
            return priority
    return TaskPriority.MEDIUM


class TaskPhaseCommandProcessor(CommandProcessor):
    """Creates tasks and phases; both may fire for the same message."""

    name = "projects"
    service = "projects"

    def __init__(
        self,
        projects: ProjectService,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._projects = projects
        self._clock = clock
        self._task_trigger = keyword_pattern(TASK_KEYWORDS)
        self._phase_trigger = keyword_pattern(PHASE_KEYWORDS)

    def classify(self, user_message: str) -> list[Intent]:
        intents: list[Intent] = []
        if self._task_trigger.search(user_message):
            intents.append(self.classify_task(user_message))
        if self._phase_trigger.search(user_message):
            intents.append(self.classify_phase(user_message))
        return intents or [NoMatch()]

    def classify_task(self, message: str) -> Intent:
        project = extract_project_name(message)
        title = extract_title(message)
        missing = tuple(f for f, v in (("project", project), ("title", title)) if not v)
        if missing:
            return MissingParams(command="task", fields=missing)
        return Matched(
            TaskRequest(
                project_name=project,
                title=title,
                priority=resolve_priority(message),
                due_date=resolve_date(message, self._clock().date()),
            )
        )

    def classify_phase(self, message: str) -> Intent:
        project = extract_project_name(message)
        name = extract_phase_name(message)
        missing = tuple(f for f, v in (("project", project), ("name", name)) if not v)
        if missing:
            return MissingParams(command="phase", fields=missing)
        description = _DESCRIPTION.search(message)
        return Matched(
            PhaseRequest(
                project_name=project,
                name=name,
                description=(
                    description.group(1).strip()
                    if description
                    else f"Fase creada por Websy AI: {name}"
                ),
            )
        )

    async def execute(self, params: TaskRequest | PhaseRequest, *, actor_id: str) -> str:
        projects = await self._call(self._projects.search(params.project_name))
        if not projects:
            known = await self._call(self._projects.search(""))
            return self.render_not_found(params.project_name, known)

        project = projects[0]
        if isinstance(params, TaskRequest):
            return await self._create_task(project, params, actor_id)
        return await self._create_phase(project, params, actor_id)

    async def _create_task(self, project: Project, params: TaskRequest, actor_id: str) -> str:
        task = await self._call(
            self._projects.create_task(
                project.id,
                {
                    "title": params.title,
                    "description": f"Tarea creada por Websy AI: {params.title}",
                    "priority": params.priority.value,
                    "due_date": params.due_date.isoformat() if params.due_date else None,
                },
                actor_id,
            )
        )
        due: date | None = task.due_date
        return render_block(
            "✅ Tarea Creada Exitosamente",
            [
                "**📋 Detalles de la Tarea:**",
                f"- **Título:** {task.title}",
                f"- **Proyecto:** {project.name}",
                f"- **Prioridad:** {task.priority}",
                f"- **Estado:** {task.status}",
                f"- **Fecha de vencimiento:** {due.isoformat() if due else UNSET_DUE_DATE_LABEL}",
                "",
                f"**🆔 ID de la tarea:** `{task.id}`",
            ],
        )

    async def _create_phase(self, project: Project, params: PhaseRequest, actor_id: str) -> str:
        next_order = await self._call(self._projects.next_phase_order(project.id))
        phase = await self._call(
            self._projects.create_phase(
                project.id,
                {
                    "name": params.name,
                    "description": params.description,
                    "phase_order": next_order,
                },
                actor_id,
            )
        )
        return render_block(
            "✅ Fase Creada Exitosamente",
            [
                "**📋 Detalles de la Fase:**",
                f"- **Nombre:** {phase.name}",
                f"- **Proyecto:** {project.name}",
                f"- **Descripción:** {phase.description}",
                f"- **Orden:** {phase.phase_order}",
                f"- **Estado:** {phase.status}",
                "",
                f"**🆔 ID de la fase:** `{phase.id}`",
            ],
        )

    @staticmethod
    def render_not_found(project_name: str, known: list[Project]) -> str:
        names = [f"- {p.name}" for p in known] or ["- (no hay proyectos disponibles)"]
        return render_block(
            "❌ Proyecto No Encontrado",
            [
                f'No encontré el proyecto "{project_name}".',
                "",
                "**Proyectos disponibles:**",
                *names,
            ],
        )

    def render_missing(self, intent: MissingParams) -> str:
        if intent.command == "phase":
            return render_block(
                "❌ Información Faltante",
                [
                    "Para crear una fase necesito que especifiques:",
                    "- **Proyecto:** ¿En qué proyecto quieres crear la fase?",
                    "- **Nombre:** ¿Cómo se llama la fase?",
                    "",
                    '**Ejemplo:** "Crear fase para el proyecto Mapacolaborativo: Desarrollo Frontend"',
                ],
            )
        return render_block(
            "❌ Información Faltante",
            [
                "Para crear una tarea necesito que especifiques:",
                "- **Proyecto:** ¿En qué proyecto quieres crear la tarea?",
                "- **Título:** ¿Cómo se llama la tarea?",
                "",
                '**Ejemplo:** "Crear tarea para el proyecto Mapacolaborativo: Implementar autenticación"',
            ],
        )

    def render_failure(self, params: TaskRequest | PhaseRequest | None, cause: str) -> str:
        what = "la fase" if isinstance(params, PhaseRequest) else "la tarea"
        heading = "Fase" if isinstance(params, PhaseRequest) else "Tarea"
        return render_block(
            f"❌ Error al Crear la {heading}",
            [
                f"No pude crear {what}.",
                "",
                f"**Error:** {cause}",
            ],
        )
