"""Tests for the report generation processor."""

from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from websy.models.commands import (
    Matched,
    NoMatch,
    ReportData,
    ReportPeriod,
    ReportRequest,
    SkillGap,
    TopPerformer,
)
from websy.services.commands.reports import (
    ReportCommandProcessor,
    artifact_names,
    resolve_period,
)

ANSWER = "Aquí tienes el resumen."
NOW = datetime(2026, 10, 19, 9, 0)


@pytest.fixture
def processor(report_service: AsyncMock) -> ReportCommandProcessor:
    return ReportCommandProcessor(report_service, clock=lambda: NOW)


@pytest.mark.parametrize(
    ("message", "period"),
    [
        ("genera un reporte", ReportPeriod.WEEKLY),
        ("reporte semanal", ReportPeriod.WEEKLY),
        ("quiero el informe mensual", ReportPeriod.MONTHLY),
        ("monthly report please", ReportPeriod.MONTHLY),
        ("reporte de la semana y del mes", ReportPeriod.WEEKLY),
    ],
)
def test_resolve_period(message: str, period: ReportPeriod) -> None:
    assert resolve_period(message) is period


def test_artifact_names() -> None:
    assert artifact_names(ReportPeriod.MONTHLY, NOW) == (
        "reporte_monthly_2026-10-19.pdf",
        "reporte_monthly_2026-10-19.csv",
    )


def test_classify(processor: ReportCommandProcessor) -> None:
    assert processor.classify("Genera un reporte") == [
        Matched(ReportRequest(period=ReportPeriod.WEEKLY))
    ]
    assert processor.classify("¿qué tal el equipo?") == [NoMatch()]


@pytest.mark.asyncio
async def test_report_without_period_is_weekly_with_two_artifacts(
    processor: ReportCommandProcessor, report_service: AsyncMock
) -> None:
    result = await processor.process(ANSWER, "Genera un reporte del equipo")

    report_service.generate_data.assert_awaited_once_with(ReportPeriod.WEEKLY)
    assert report_service.to_document.await_args.args[1] == "reporte_weekly_2026-10-19.pdf"
    assert report_service.to_table.await_args.args[1] == "reporte_weekly_2026-10-19.csv"
    block = result[len(ANSWER):]
    assert block.startswith("\n\n### 📊 Reporte Semanal Generado")
    assert "`reporte_weekly_2026-10-19.pdf`" in block
    assert "`reporte_weekly_2026-10-19.csv`" in block
    assert "**Total de Tareas:** 10" in block
    assert "**Tasa de Finalización:** 70.0%" in block


@pytest.mark.asyncio
async def test_summary_lists_performers_and_top_three_gaps(
    processor: ReportCommandProcessor, report_service: AsyncMock
) -> None:
    report_service.generate_data.return_value = ReportData(
        total_tasks=4,
        completed_tasks=1,
        overdue_tasks=2,
        productivity_score=55.5,
        team_efficiency=60,
        top_performers=[TopPerformer(user_name="Ana", completed_tasks=3)],
        skill_gaps=[SkillGap(skill_name=f"skill-{i}", gap_percentage=10 * i) for i in range(4)],
    )

    result = await processor.process(ANSWER, "reporte mensual")

    assert "### 📊 Reporte Mensual Generado" in result
    assert "1. **Ana:** 3 tareas" in result
    assert "skill-2" in result
    assert "skill-3" not in result
    assert "**Tareas Vencidas:** 2" in result


@pytest.mark.asyncio
async def test_collaborator_failure_appends_error_block(
    processor: ReportCommandProcessor, report_service: AsyncMock
) -> None:
    report_service.generate_data.side_effect = PermissionError("admin role required")

    result = await processor.process(ANSWER, "genera el reporte")

    assert result.startswith(ANSWER)
    assert "### ❌ Error al Generar el Reporte" in result
    assert "admin role required" in result
    report_service.to_document.assert_not_awaited()


def test_completion_rate_handles_empty_period() -> None:
    assert ReportData().completion_rate == 0.0
    assert ReportData(total_tasks=3, completed_tasks=1).completion_rate == 33.3
