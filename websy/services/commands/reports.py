"""Generate weekly or monthly team reports requested in chat."""

import logging
import re
from collections.abc import Callable
from datetime import datetime

from websy.integrations.protocols import ReportService
from websy.models.commands import (
    Intent,
    Matched,
    MissingParams,
    NoMatch,
    ReportData,
    ReportPeriod,
    ReportRequest,
)
from websy.services.commands.base import CommandProcessor, keyword_pattern, render_block

logger = logging.getLogger(__name__)

REPORT_KEYWORDS = ("reporte", "report", "informe")
MAX_SKILL_GAPS = 3

_WEEKLY = re.compile(r"(?<!\w)(?:semanal|semana|weekly|week)(?!\w)", re.IGNORECASE)
_MONTHLY = re.compile(r"(?<!\w)(?:mensual|mes|monthly|month)(?!\w)", re.IGNORECASE)

_PERIOD_LABELS = {ReportPeriod.WEEKLY: "Semanal", ReportPeriod.MONTHLY: "Mensual"}


def resolve_period(message: str) -> ReportPeriod:
    """Weekly unless the message asks for a monthly report only."""
    if _MONTHLY.search(message) and not _WEEKLY.search(message):
        return ReportPeriod.MONTHLY
    return ReportPeriod.WEEKLY


def artifact_names(period: ReportPeriod, day: datetime) -> tuple[str, str]:
    stem = f"reporte_{period.value}_{day.date().isoformat()}"
    return f"{stem}.pdf", f"{stem}.csv"


class ReportCommandProcessor(CommandProcessor):
    """Builds report data, emits a PDF and a CSV, appends a summary."""

    name = "reports"
    service = "reports"

    def __init__(
        self,
        reports: ReportService,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._reports = reports
        self._clock = clock
        self._trigger = keyword_pattern(REPORT_KEYWORDS)

    def classify(self, user_message: str) -> list[Intent]:
        if not self._trigger.search(user_message):
            return [NoMatch()]
        return [Matched(ReportRequest(period=resolve_period(user_message)))]

    async def execute(self, params: ReportRequest, *, actor_id: str) -> str:
        pdf_name, csv_name = artifact_names(params.period, self._clock())
        data: ReportData = await self._call(self._reports.generate_data(params.period))
        document = await self._call(self._reports.to_document(data, pdf_name))
        table = await self._call(self._reports.to_table(data, csv_name))
        return self.render_summary(params.period, data, document or pdf_name, table or csv_name)

    @staticmethod
    def render_summary(period: ReportPeriod, data: ReportData, document: str, table: str) -> str:
        lines = [
            "**Archivos generados:**",
            f"- **PDF:** `{document}`",
            f"- **CSV:** `{table}`",
            "",
            "**Resumen del Reporte:**",
            f"- **Total de Tareas:** {data.total_tasks}",
            f"- **Tareas Completadas:** {data.completed_tasks}",
            f"- **Tareas Vencidas:** {data.overdue_tasks}",
            f"- **Tasa de Finalización:** {data.completion_rate}%",
            f"- **Puntuación de Productividad:** {data.productivity_score}%",
            f"- **Eficiencia del Equipo:** {data.team_efficiency}%",
        ]
        if data.top_performers:
            lines += ["", "**Top Performers:**"]
            lines += [
                f"{rank}. **{p.user_name}:** {p.completed_tasks} tareas"
                for rank, p in enumerate(data.top_performers, start=1)
            ]
        if data.skill_gaps:
            lines += ["", "**Gaps de Habilidades Identificados:**"]
            lines += [
                f"- **{gap.skill_name}:** {gap.gap_percentage:.1f}% gap"
                for gap in data.skill_gaps[:MAX_SKILL_GAPS]
            ]
        return render_block(f"📊 Reporte {_PERIOD_LABELS[period]} Generado", lines)

    def render_missing(self, intent: MissingParams) -> str:
        # Every report request resolves a period, so nothing can be missing.
        return ""

    def render_failure(self, params: ReportRequest | None, cause: str) -> str:
        return render_block(
            "❌ Error al Generar el Reporte",
            [
                "No se pudo generar el reporte. Verifica que:",
                "- Tengas permisos de administrador",
                "- La base de datos esté accesible",
                "",
                f"**Error:** {cause}",
            ],
        )
