"""Schedule meetings requested in chat through the calendar collaborator."""

import logging
import re
from collections.abc import Callable
from datetime import datetime, time, timedelta, tzinfo

from websy.integrations.protocols import CalendarService
from websy.models.commands import Intent, Matched, MeetingRequest, MissingParams, NoMatch
from websy.services.commands.base import CommandProcessor, keyword_pattern, render_block
from websy.services.commands.dates import resolve_date, resolve_time

logger = logging.getLogger(__name__)

SCHEDULING_KEYWORDS = (
    "programar", "agendar", "reunión", "reunion", "meeting", "cita", "evento", "schedule",
)  # fmt: skip

# Checked in order; first keyword found in the message names the meeting
MEETING_TITLES: tuple[tuple[str, str], ...] = (
    ("presentación", "Presentación de Proyecto"),
    ("presentation", "Project Presentation"),
    ("revisión", "Revisión de Proyecto"),
    ("review", "Project Review"),
    ("planificación", "Sesión de Planificación"),
    ("planning", "Planning Session"),
    ("análisis", "Sesión de Análisis"),
    ("analysis", "Analysis Session"),
    ("coordinación", "Reunión de Coordinación"),
    ("coordination", "Coordination Meeting"),
    ("técnico", "Reunión Técnica"),
    ("technical", "Technical Meeting"),
    ("diseño", "Reunión de Diseño"),
    ("design", "Design Meeting"),
    ("marketing", "Reunión de Marketing"),
    ("ventas", "Reunión de Ventas"),
    ("sales", "Sales Meeting"),
    ("reunión", "Reunión de Trabajo"),
    ("meeting", "Team Meeting"),
)
DEFAULT_TITLE = "Reunión de Trabajo"
DEFAULT_START = time(17, 0)
MEETING_DURATION = timedelta(hours=1)

_QUOTED = re.compile(r"[\"“”«]([^\"“”«»]+)[\"“”»]")

_WEEKDAYS = ("lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo")


def local_now() -> datetime:
    return datetime.now().astimezone()


def extract_title(message: str) -> str:
    quoted = _QUOTED.search(message)
    if quoted and quoted.group(1).strip():
        return quoted.group(1).strip()
    lowered = message.lower()
    for keyword, title in MEETING_TITLES:
        if keyword in lowered:
            return title
    return DEFAULT_TITLE


class CalendarCommandProcessor(CommandProcessor):
    """Creates a one-hour calendar event when the user asks to schedule one."""

    name = "calendar"
    service = "calendar"

    def __init__(
        self,
        calendar: CalendarService,
        clock: Callable[[], datetime] = local_now,
        tz: tzinfo | None = None,
    ) -> None:
        self._calendar = calendar
        self._clock = clock
        self._tz = tz
        self._trigger = keyword_pattern(SCHEDULING_KEYWORDS)

    def _now(self) -> datetime:
        now = self._clock()
        if self._tz is not None:
            now = now.astimezone(self._tz) if now.tzinfo else now.replace(tzinfo=self._tz)
        return now

    def classify(self, user_message: str) -> list[Intent]:
        if not self._trigger.search(user_message):
            return [NoMatch()]

        now = self._now()
        day = resolve_date(user_message, now.date()) or now.date()
        start_time = resolve_time(user_message) or DEFAULT_START
        start = datetime.combine(day, start_time, tzinfo=now.tzinfo)
        request = MeetingRequest(
            title=extract_title(user_message), start=start, end=start + MEETING_DURATION
        )
        return [Matched(request)]

    async def execute(self, params: MeetingRequest, *, actor_id: str) -> str:
        if not self._calendar.is_authenticated:
            logger.info("Calendar not connected, skipping meeting creation")
            return self.render_missing(MissingParams(command="meeting", fields=("calendar",)))

        event = await self._call(
            self._calendar.create_meeting(title=params.title, start=params.start, end=params.end)
        )
        account = self._calendar.account_email or "cuenta autenticada"
        weekday = _WEEKDAYS[params.start.weekday()]
        return render_block(
            "✅ Reunión Programada Exitosamente",
            [
                "**Detalles de la reunión:**",
                f"- **Título:** {params.title}",
                f"- **Fecha:** {weekday} {params.start.date().isoformat()}",
                f"- **Hora:** {params.start.strftime('%H:%M')}",
                "- **Duración:** 1 hora",
                f"- **ID del evento:** `{event.id}`",
                f"- **Calendario:** {account}",
            ],
        )

    def render_missing(self, intent: MissingParams) -> str:
        return render_block(
            "🔗 Conectar Google Calendar",
            [
                "Para programar reuniones, primero necesitas conectar tu Google Calendar.",
                "",
                "**Pasos:**",
                '1. Haz clic en el botón **"Conectar Google Calendar"** en el panel lateral',
                "2. Autoriza el acceso a tu cuenta de Google",
                "3. Una vez conectado, podré programar reuniones reales en tu calendario",
            ],
        )

    def render_failure(self, params: MeetingRequest | None, cause: str) -> str:
        return render_block(
            "❌ Error al Programar la Reunión",
            [
                "No pude crear la reunión en tu Google Calendar.",
                "",
                f"**Error:** {cause}",
            ],
        )
