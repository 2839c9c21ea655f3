"""Tests for the task and phase creation processor."""

from datetime import date, datetime
from unittest.mock import AsyncMock

import pytest

from websy.models.commands import (
    Matched,
    MissingParams,
    NoMatch,
    PhaseRecord,
    PhaseRequest,
    Project,
    TaskPriority,
    TaskRecord,
    TaskRequest,
)
from websy.services.commands.projects import (
    TaskPhaseCommandProcessor,
    extract_project_name,
    extract_title,
    resolve_priority,
)

ANSWER = "Listo, me encargo."
NOW = datetime(2026, 10, 19, 9, 0)


@pytest.fixture
def processor(project_service: AsyncMock) -> TaskPhaseCommandProcessor:
    return TaskPhaseCommandProcessor(project_service, clock=lambda: NOW)


def test_classify_task_with_defaults(processor: TaskPhaseCommandProcessor) -> None:
    intents = processor.classify("crear tarea para el proyecto Atlas: Configurar CI")

    assert intents == [
        Matched(
            TaskRequest(
                project_name="Atlas",
                title="Configurar CI",
                priority=TaskPriority.MEDIUM,
                due_date=None,
            )
        )
    ]


def test_classify_task_with_priority_and_due_date(processor: TaskPhaseCommandProcessor) -> None:
    [intent] = processor.classify(
        "Nueva tarea para el proyecto Atlas: Revisar login con prioridad alta para mañana"
    )

    assert intent.params.title == "Revisar login"
    assert intent.params.priority is TaskPriority.HIGH
    assert intent.params.due_date == date(2026, 10, 20)


def test_classify_task_missing_fields(processor: TaskPhaseCommandProcessor) -> None:
    assert processor.classify("necesito una nueva tarea para mañana") == [
        MissingParams(command="task", fields=("project", "title"))
    ]


def test_classify_without_trigger(processor: TaskPhaseCommandProcessor) -> None:
    assert processor.classify("¿cómo va el proyecto Atlas?") == [NoMatch()]


def test_classify_phase_with_inline_name_and_description(
    processor: TaskPhaseCommandProcessor,
) -> None:
    intents = processor.classify(
        "nueva fase Pruebas para el proyecto Atlas con descripción QA manual"
    )

    assert intents == [
        Matched(PhaseRequest(project_name="Atlas", name="Pruebas", description="QA manual"))
    ]


def test_classify_task_and_phase_in_one_message(processor: TaskPhaseCommandProcessor) -> None:
    intents = processor.classify("crear tarea y crear fase para el proyecto Atlas: Integración")

    assert [type(i.params) for i in intents] == [TaskRequest, PhaseRequest]


@pytest.mark.parametrize(
    ("message", "priority"),
    [
        ("es urgente", TaskPriority.URGENT),
        ("high priority", TaskPriority.HIGH),
        ("prioridad baja", TaskPriority.LOW),
        ("sin prisa", TaskPriority.MEDIUM),
    ],
)
def test_resolve_priority(message: str, priority: TaskPriority) -> None:
    assert resolve_priority(message) is priority


@pytest.mark.parametrize(
    ("message", "project"),
    [
        ("tarea para el proyecto Mapa Colaborativo, título X", "Mapa Colaborativo"),
        ("tarea para Atlas: algo", "Atlas"),
        ("tarea para la web corporativa con prioridad alta: algo", "web corporativa"),
        ("tarea sin destino", None),
    ],
)
def test_extract_project_name(message: str, project: str | None) -> None:
    assert extract_project_name(message) == project


def test_extract_title_prefers_quotes() -> None:
    assert extract_title('nueva tarea "Diseñar logo" para el proyecto Atlas: ya') == "Diseñar logo"


@pytest.mark.asyncio
async def test_creates_task_and_appends_confirmation(
    processor: TaskPhaseCommandProcessor, project_service: AsyncMock
) -> None:
    project_service.create_task.return_value = TaskRecord(
        id="task-123", title="Configurar CI", priority="medium"
    )

    result = await processor.process(
        ANSWER, "crear tarea para el proyecto Atlas: Configurar CI", actor_id="user-1"
    )

    project_service.search.assert_awaited_once_with("Atlas")
    project_service.create_task.assert_awaited_once_with(
        "p1",
        {
            "title": "Configurar CI",
            "description": "Tarea creada por Websy AI: Configurar CI",
            "priority": "medium",
            "due_date": None,
        },
        "user-1",
    )
    block = result[len(ANSWER):]
    assert block.startswith("\n\n### ✅ Tarea Creada Exitosamente")
    assert "**Título:** Configurar CI" in block
    assert "**Prioridad:** medium" in block
    assert "**Fecha de vencimiento:** No especificada" in block
    assert "`task-123`" in block


@pytest.mark.asyncio
async def test_first_matching_project_wins(
    processor: TaskPhaseCommandProcessor, project_service: AsyncMock
) -> None:
    project_service.search.return_value = [
        Project(id="p9", name="Atlas Mobile"),
        Project(id="p1", name="Atlas"),
    ]
    project_service.create_task.return_value = TaskRecord(id="t", title="x")

    await processor.process(ANSWER, "crear tarea para el proyecto Atlas: x")

    assert project_service.create_task.await_args.args[0] == "p9"


@pytest.mark.asyncio
async def test_unknown_project_lists_known_ones(
    processor: TaskPhaseCommandProcessor, project_service: AsyncMock
) -> None:
    known = [Project(id="p1", name="Atlas"), Project(id="p2", name="Orion")]
    project_service.search.side_effect = lambda fragment: [] if fragment else known

    result = await processor.process(ANSWER, "crear tarea para el proyecto Zeus: algo")

    assert "### ❌ Proyecto No Encontrado" in result
    assert '"Zeus"' in result
    assert "- Atlas" in result
    assert "- Orion" in result
    project_service.create_task.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_fields_append_guidance_without_side_effects(
    processor: TaskPhaseCommandProcessor, project_service: AsyncMock
) -> None:
    result = await processor.process(ANSWER, "crear tarea")

    assert result.startswith(ANSWER)
    assert "### ❌ Información Faltante" in result
    assert "Para crear una tarea" in result
    project_service.search.assert_not_awaited()


@pytest.mark.asyncio
async def test_creates_phase_with_next_order(
    processor: TaskPhaseCommandProcessor, project_service: AsyncMock
) -> None:
    project_service.next_phase_order.return_value = 3
    project_service.create_phase.return_value = PhaseRecord(
        id="ph-1",
        name="Desarrollo Frontend",
        description="Fase creada por Websy AI: Desarrollo Frontend",
        phase_order=3,
    )

    result = await processor.process(
        ANSWER, "Crear fase para el proyecto Atlas: Desarrollo Frontend"
    )

    project_service.next_phase_order.assert_awaited_once_with("p1")
    project_service.create_phase.assert_awaited_once_with(
        "p1",
        {
            "name": "Desarrollo Frontend",
            "description": "Fase creada por Websy AI: Desarrollo Frontend",
            "phase_order": 3,
        },
        "system",
    )
    assert "### ✅ Fase Creada Exitosamente" in result
    assert "**Orden:** 3" in result
    assert "`ph-1`" in result


@pytest.mark.asyncio
async def test_task_block_precedes_phase_block(
    processor: TaskPhaseCommandProcessor, project_service: AsyncMock
) -> None:
    project_service.create_task.return_value = TaskRecord(id="t-1", title="Integración")
    project_service.next_phase_order.return_value = 1
    project_service.create_phase.return_value = PhaseRecord(id="ph-1", name="Integración")

    result = await processor.process(
        ANSWER, "crear tarea y crear fase para el proyecto Atlas: Integración"
    )

    assert result.index("Tarea Creada") < result.index("Fase Creada")


@pytest.mark.asyncio
async def test_creation_failure_appends_error_block(
    processor: TaskPhaseCommandProcessor, project_service: AsyncMock
) -> None:
    project_service.create_task.side_effect = RuntimeError("row level security")

    result = await processor.process(ANSWER, "crear tarea para el proyecto Atlas: x")

    assert result.startswith(ANSWER)
    assert "### ❌ Error al Crear la Tarea" in result
    assert "row level security" in result
