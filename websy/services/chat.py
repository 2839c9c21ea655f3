"""Chat orchestration.

One turn flows through:
1. Validating the user message
2. Assembling the prompt from database, analysis and memory context
3. Dispatching it to the provider with credential failover
4. Running command processors over the answer
5. Formatting the answer into the section layout
6. Saving conversation memory (best effort)
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Callable, Sequence
from typing import Any

from websy.core.config import Settings
from websy.core.exceptions import (
    ConfigurationError,
    ProviderError,
    ProviderErrorKind,
    ValidationError,
    WebsyException,
)
from websy.core.key_pool import KeyPoolManager
from websy.core.llm import GeminiClient
from websy.db.key_pool_store import KeyPoolStore, build_key_pool_store
from websy.integrations.protocols import (
    CalendarService,
    DatabaseContextProvider,
    MemoryStore,
    ProjectService,
    ReportService,
)
from websy.models.chat import Attachment, ChatMessage, ChatResult, MessageAnalysis
from websy.models.key_pool import PoolTelemetry
from websy.services.commands import (
    CalendarCommandProcessor,
    CommandPipeline,
    CommandProcessor,
    ReportCommandProcessor,
    TaskPhaseCommandProcessor,
)
from websy.services.context_assembler import ContextAssembler
from websy.services.dispatcher import RequestDispatcher
from websy.services.formatting import format_response
from websy.services.message_analysis import MessageAnalyzer

logger = logging.getLogger(__name__)

DEFAULT_TURN_TIMEOUT_SECONDS = 120.0

# Topic fragments that feed the user profile
WORK_PATTERN_HINTS = ("desarrollo", "análisis", "reunión", "proyecto")
EXPERTISE_HINTS = ("react", "typescript", "api", "database", "frontend", "backend")


def new_conversation_id() -> str:
    """``conv_<epoch ms>_<random>`` identifier for a saved memory."""
    return f"conv_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def profile_update(analysis: MessageAnalysis) -> dict[str, Any]:
    """Partial user profile derived from one message analysis."""

    def matching(hints: Sequence[str]) -> list[str]:
        return [t for t in analysis.key_topics if any(h in t.lower() for h in hints)]

    return {
        "work_patterns": matching(WORK_PATTERN_HINTS),
        "common_tasks": list(analysis.suggested_actions),
        "expertise_areas": matching(EXPERTISE_HINTS),
    }


class ChatOrchestrator:
    """Runs chat turns and exposes pool telemetry.

    Overlapping ``send_message`` calls are not serialized: both may read the
    same active credential before either rotates it.
    """

    def __init__(
        self,
        key_pool: KeyPoolManager,
        dispatcher: RequestDispatcher,
        assembler: ContextAssembler,
        pipeline: CommandPipeline | None = None,
        memory_store: MemoryStore | None = None,
        formatter: Callable[[str], str] | None = format_response,
        turn_timeout: float | None = DEFAULT_TURN_TIMEOUT_SECONDS,
    ) -> None:
        self._key_pool = key_pool
        self._dispatcher = dispatcher
        self._assembler = assembler
        self._pipeline = pipeline or CommandPipeline()
        self._memory_store = memory_store
        self._formatter = formatter
        self._turn_timeout = turn_timeout
        self._is_loading = False
        self._last_error: str | None = None

    @property
    def key_pool(self) -> KeyPoolManager:
        return self._key_pool

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def last_error(self) -> str | None:
        return self._last_error

    def telemetry(self) -> PoolTelemetry:
        """Pool telemetry with the orchestrator's loading flag and last error."""
        telemetry = self._key_pool.telemetry()
        telemetry.is_loading = self._is_loading
        telemetry.error = telemetry.error or self._last_error
        return telemetry

    def reset_pool(self) -> PoolTelemetry:
        """Manually reset the key pool and clear the last error."""
        self._key_pool.reset_all()
        self._last_error = None
        return self.telemetry()

    async def send_message(
        self,
        message: str,
        history: Sequence[ChatMessage] = (),
        attachments: Sequence[Attachment] = (),
        context_type: str = "general",
        context_id: str | None = None,
        actor_id: str = "system",
    ) -> ChatResult:
        """Answer one user message.

        Args:
            message: The user's message; must not be blank.
            history: Prior messages, oldest first.
            attachments: Images or files sent with this message.
            context_type: Kind of page the chat runs in (e.g. ``"project"``).
            context_id: Id of the entity the chat is scoped to, if any.
            actor_id: User id recorded on created tasks and phases.

        Returns:
            The final answer text plus pool telemetry.

        Raises:
            ValidationError: If the message is blank.
            ConfigurationError: If no credentials are available.
            ExhaustionError: If every credential is rate limited.
            ProviderError: For any other provider failure or a turn timeout.
        """
        if not message or not message.strip():
            raise ValidationError("The message cannot be empty", field="message")
        if not self._key_pool.initialized or self._key_pool.size == 0:
            raise ConfigurationError("No provider API keys available")

        self._set_loading(True)
        try:
            text, analysis = await self._with_timeout(
                self._run_turn(message, history, attachments, context_type, context_id, actor_id)
            )
        except WebsyException as e:
            self._last_error = e.message
            logger.warning(
                "Chat turn failed",
                extra={"code": e.code, "slot": self._key_pool.active_index + 1},
            )
            raise
        except Exception as e:
            self._last_error = str(e) or type(e).__name__
            logger.exception("Chat turn failed unexpectedly")
            raise
        finally:
            self._set_loading(False)

        self._last_error = None
        await self._remember(analysis)
        return ChatResult(text=text, telemetry=self.telemetry())

    async def _with_timeout(self, turn: Any) -> tuple[str, MessageAnalysis]:
        if self._turn_timeout is None:
            return await turn
        try:
            return await asyncio.wait_for(turn, timeout=self._turn_timeout)
        except TimeoutError as e:
            raise ProviderError(ProviderErrorKind.UNKNOWN, "timeout") from e

    async def _run_turn(
        self,
        message: str,
        history: Sequence[ChatMessage],
        attachments: Sequence[Attachment],
        context_type: str,
        context_id: str | None,
        actor_id: str,
    ) -> tuple[str, MessageAnalysis]:
        assembled = await self._assembler.assemble(
            message, history, attachments, context_type, context_id
        )
        answer = await self._dispatcher.dispatch(assembled.context)
        answer = await self._pipeline.run(answer, message, actor_id=actor_id)
        if self._formatter is not None:
            answer = self._formatter(answer)
        logger.info(
            "Chat turn completed",
            extra={
                "slot": self._key_pool.active_index + 1,
                "answer_chars": len(answer),
                "snapshot_available": assembled.snapshot_available,
            },
        )
        return answer, assembled.analysis

    async def _remember(self, analysis: MessageAnalysis) -> None:
        if self._memory_store is None:
            return
        conversation_id = new_conversation_id()
        try:
            await self._memory_store.save(
                conversation_id,
                analysis.context_summary,
                analysis.key_topics,
                analysis.user_preferences,
            )
            if analysis.user_preferences:
                await self._memory_store.update_profile(profile_update(analysis))
        except Exception:
            logger.warning(
                "Failed to save conversation memory",
                extra={"conversation_id": conversation_id},
                exc_info=True,
            )

    def _set_loading(self, loading: bool) -> None:
        self._is_loading = loading
        self._key_pool.set_loading(loading)


def build_orchestrator(
    settings: Settings,
    *,
    store: KeyPoolStore | None = None,
    client: GeminiClient | None = None,
    database_context: DatabaseContextProvider | None = None,
    memory_store: MemoryStore | None = None,
    calendar: CalendarService | None = None,
    reports: ReportService | None = None,
    projects: ProjectService | None = None,
) -> ChatOrchestrator:
    """Wire an orchestrator from settings and the available collaborators.

    Command processors are only installed for collaborators that are given,
    in the order calendar, reports, projects.

    Raises:
        ConfigurationError: If no provider API keys are configured.
    """
    key_pool = KeyPoolManager(
        store if store is not None else build_key_pool_store(settings),
        estimated_quota=settings.KEY_POOL_ESTIMATED_QUOTA,
    )
    key_pool.initialize(settings.api_keys(), settings.KEY_POOL_RESET_INTERVAL_HOURS)

    processors: list[CommandProcessor] = []
    if calendar is not None:
        processors.append(CalendarCommandProcessor(calendar))
    if reports is not None:
        processors.append(ReportCommandProcessor(reports))
    if projects is not None:
        processors.append(TaskPhaseCommandProcessor(projects))

    return ChatOrchestrator(
        key_pool=key_pool,
        dispatcher=RequestDispatcher(key_pool, client or GeminiClient.from_settings(settings)),
        assembler=ContextAssembler(
            database_context=database_context,
            analyzer=MessageAnalyzer(),
            memory_store=memory_store,
        ),
        pipeline=CommandPipeline(processors),
        memory_store=memory_store,
        formatter=format_response if settings.RESPONSE_FORMATTING_ENABLED else None,
        turn_timeout=settings.CHAT_TURN_TIMEOUT_SECONDS,
    )
