"""Chat service - the per-request orchestration loop.

``prepare_chat`` does everything that can fail with a plain HTTP error
(ownership, credentials) before any event is streamed. ``run_chat`` then
drives one turn: tool discovery, history, optional deep research, prompt
assembly, the provider stream and post-response background work.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from neochat.core.cancellation import race_cancel
from neochat.core.log_sanitizer import sanitize_for_logging
from neochat.core.metrics_logger import log_metric
from neochat.domain.errors import ConfigurationError, NotFoundError, OperationAborted
from neochat.interfaces.events import EventPublisher
from neochat.interfaces.llm import LLMProtocol
from neochat.modules.builtin_tools import BUILTIN_TOOL_NAMES, BUILTIN_TOOL_SCHEMAS, BuiltinToolRegistry, TavilySearchClient
from neochat.modules.config import AppSettings
from neochat.modules.llm import (
    StreamCompleted,
    StreamFailed,
    TextDelta,
    ToolCallFinished,
    ToolCallStarted,
    is_provider_available,
)
from neochat.modules.mcp_tools import RemoteToolCatalog, RemoteToolGateway
from neochat.modules.storage import (
    ConversationRepository,
    MemoryRepository,
    RemoteServerRepository,
    SettingsRepository,
)

from .memory_extraction import conversation_for_extraction, run_auto_memory
from .preprocessors.message_builder import build_messages, build_system_prompt, build_user_content
from .research import ResearchOrchestrator
from .title import auto_title_conversation
from .utilities.background import BackgroundTaskRunner
from .utilities.error_handler import classify_llm_error
from .utilities.tool_executor import UnifiedToolExecutor

logger = logging.getLogger(__name__)

CHAT_MODES = ("normal", "thinking", "deep_research")
NO_API_KEY_MESSAGE = "No API key configured. Add one in Settings -> Model."

LLMFactory = Callable[[str, Optional[str], str], LLMProtocol]
SearchClientFactory = Callable[[str], TavilySearchClient]


def resolve_mode(requested: Optional[str], settings: Mapping[str, str]) -> str:
    """Request mode overrides the stored chat mode; unknown values fall back to normal."""
    mode = requested or settings.get("chat_mode") or "normal"
    return mode if mode in CHAT_MODES else "normal"


def reasoning_effort_for(mode: str) -> str:
    return "high" if mode in ("deep_research", "thinking") else "low"


def _secret(settings: Mapping[str, str], key: str) -> Optional[str]:
    return (settings.get(key) or "").strip() or None


@dataclass
class ChatTurn:
    """Everything resolved before streaming starts."""
    user_id: str
    conversation: Dict[str, Any]
    settings: Dict[str, str]
    mode: str
    message: str
    llm: LLMProtocol
    api_key: Optional[str] = None
    search_key: Optional[str] = None
    attachments: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def conversation_id(self) -> str:
        return self.conversation["id"]


class ChatService:
    """
    Core chat service that orchestrates one chat turn.
    Transport-agnostic: all client output goes through an EventPublisher.
    """

    def __init__(
        self,
        app_settings: AppSettings,
        conversation_repo: ConversationRepository,
        settings_repo: SettingsRepository,
        memory_repo: MemoryRepository,
        server_repo: RemoteServerRepository,
        gateway: RemoteToolGateway,
        llm_factory: LLMFactory,
        search_client_factory: SearchClientFactory,
        background: Optional[BackgroundTaskRunner] = None,
    ):
        self.app_settings = app_settings
        self.conversation_repo = conversation_repo
        self.settings_repo = settings_repo
        self.memory_repo = memory_repo
        self.server_repo = server_repo
        self.gateway = gateway
        self.llm_factory = llm_factory
        self.search_client_factory = search_client_factory
        self.background = background or BackgroundTaskRunner()

    # ------------------------------------------------------------------
    # Preflight
    # ------------------------------------------------------------------
    def prepare_chat(
        self,
        user_id: str,
        message: str,
        conversation_id: Optional[str] = None,
        mode: Optional[str] = None,
        attachments: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> ChatTurn:
        """Resolve the conversation, settings and credentials.

        Raises:
            NotFoundError: ``conversation_id`` is unknown or owned by someone else.
            ConfigurationError: the selected provider has no usable credential.
        """
        conversation = None
        if conversation_id:
            conversation = self.conversation_repo.get_conversation(conversation_id, user_id)
            if conversation is None:
                raise NotFoundError("Conversation not found")

        settings = self.settings_repo.get_effective(user_id)
        api_key = _secret(settings, "openai_api_key")
        provider = settings.get("provider") or "openai"
        if not is_provider_available(provider, api_key):
            raise ConfigurationError(NO_API_KEY_MESSAGE)

        # New conversations are only created once the request can actually run
        if conversation is None:
            conversation = self.conversation_repo.create_conversation(user_id)

        return ChatTurn(
            user_id=user_id,
            conversation=conversation,
            settings=settings,
            mode=resolve_mode(mode, settings),
            message=message,
            llm=self.llm_factory(provider, api_key, user_id),
            api_key=api_key,
            search_key=_secret(settings, "tavily_api_key"),
            attachments=[dict(a) for a in attachments or []],
        )

    # ------------------------------------------------------------------
    # Turn
    # ------------------------------------------------------------------
    async def handle_chat(
        self,
        user_id: str,
        message: str,
        publisher: EventPublisher,
        conversation_id: Optional[str] = None,
        mode: Optional[str] = None,
        attachments: Optional[Sequence[Mapping[str, Any]]] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        turn = self.prepare_chat(user_id, message, conversation_id, mode, attachments)
        await self.run_chat(turn, publisher, cancel_event)

    async def _collect_remote_tools(
        self,
        user_id: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RemoteToolCatalog:
        servers = self.server_repo.list_enabled(user_id)
        if not servers:
            return RemoteToolCatalog()
        try:
            return await race_cancel(
                self.gateway.collect_remote_tools(
                    servers, reserved_names=BUILTIN_TOOL_NAMES, user_id=user_id
                ),
                cancel_event,
            )
        except OperationAborted:
            raise
        except Exception as e:  # noqa: BLE001 - discovery degrades to no remote tools
            logger.warning("Remote tool discovery failed: %s", sanitize_for_logging(e))
            return RemoteToolCatalog()

    async def _research(
        self,
        turn: ChatTurn,
        search_client: TavilySearchClient,
        publisher: EventPublisher,
        cancel_event: Optional[asyncio.Event],
    ) -> str:
        orchestrator = ResearchOrchestrator(
            llm=turn.llm,
            search_client=search_client,
            publisher=publisher,
            model=self.app_settings.auxiliary_model,
            search_timeout=self.app_settings.research_search_timeout_seconds,
            cancel_event=cancel_event,
        )
        try:
            return await orchestrator.run(turn.message)
        except OperationAborted:
            raise
        except Exception as e:  # noqa: BLE001 - research is optional context
            logger.warning("Deep research failed: %s", sanitize_for_logging(e))
            return ""

    async def run_chat(
        self,
        turn: ChatTurn,
        publisher: EventPublisher,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Stream one assistant reply for a prepared turn.

        Exactly one of ``done`` / ``error`` is published unless the request is
        cancelled, in which case neither is and nothing more is persisted.
        """
        settings = self.app_settings
        user_id = turn.user_id
        conv_id = turn.conversation_id
        await publisher.publish_conversation_id(conv_id)

        memory_facts = self.memory_repo.list_facts(user_id)
        try:
            catalog = await self._collect_remote_tools(user_id, cancel_event)
        except OperationAborted:
            logger.info("Chat request aborted during tool discovery")
            return
        tools = list(BUILTIN_TOOL_SCHEMAS) + catalog.schemas

        search_client = self.search_client_factory(turn.search_key) if turn.search_key else None
        registry = BuiltinToolRegistry(
            user_id=user_id,
            memory_repo=self.memory_repo,
            search_client=search_client,
            image_generator=turn.llm if turn.api_key else None,
            search_timeout=settings.web_search_timeout_seconds,
        )
        executor = UnifiedToolExecutor(
            registry,
            gateway=self.gateway,
            routes=catalog.routes,
            publisher=publisher,
            user_id=user_id,
        )

        history = self.conversation_repo.recent_messages(conv_id, settings.history_window)
        self.conversation_repo.add_message(conv_id, "user", turn.message.strip())
        if not history:
            self.background.spawn(
                auto_title_conversation(
                    turn.llm, self.conversation_repo, conv_id, user_id, turn.message,
                    settings.auxiliary_model,
                ),
                name="auto_title",
            )

        research_context = ""
        if turn.mode == "deep_research" and search_client is not None:
            try:
                research_context = await self._research(turn, search_client, publisher, cancel_event)
            except OperationAborted:
                logger.info("Chat request aborted during research")
                return

        messages = build_messages(
            build_system_prompt(turn.settings, memory_facts, turn.mode),
            history,
            build_user_content(turn.message, turn.attachments),
            research_context=research_context,
        )

        log_metric("chat_turn", user_id, mode=turn.mode, tool_count=len(tools), history=len(history))
        async for event in turn.llm.stream_chat(
            messages,
            turn.settings.get("model") or "gpt-5-mini",
            temperature=turn.settings.get("temperature"),
            tools=tools,
            tool_executor=executor,
            cancel_event=cancel_event,
            reasoning_effort=reasoning_effort_for(turn.mode),
        ):
            if isinstance(event, TextDelta):
                await publisher.publish_delta(event.content)
            elif isinstance(event, ToolCallStarted):
                await publisher.publish_tool_call(event.name, event.args)
            elif isinstance(event, ToolCallFinished):
                await publisher.publish_tool_result(event.name, event.result)
            elif isinstance(event, StreamCompleted):
                if event.aborted:
                    logger.info("Chat request aborted after %d round(s); nothing persisted", event.rounds)
                    return
                self._finish_turn(turn, messages, memory_facts, event.text)
                await publisher.publish_done()
            elif isinstance(event, StreamFailed):
                _, user_msg, log_msg = classify_llm_error(event.error)
                logger.error(log_msg)
                log_metric("error", user_id, error_type="llm_stream")
                await publisher.publish_error(user_msg)

    def _finish_turn(
        self,
        turn: ChatTurn,
        messages: List[Dict[str, Any]],
        memory_facts: List[Dict[str, Any]],
        reply: str,
    ) -> None:
        self.conversation_repo.add_message(turn.conversation_id, "assistant", reply)
        self.conversation_repo.touch_conversation(turn.conversation_id)

        if turn.settings.get("auto_memory") == "0" or not reply.strip():
            return
        settings = self.app_settings
        self.background.spawn(
            run_auto_memory(
                turn.llm,
                self.memory_repo,
                turn.user_id,
                conversation_for_extraction(messages, reply),
                memory_facts,
                model=settings.auxiliary_model,
                max_facts=settings.auto_memory_max_facts,
                max_words=settings.auto_memory_max_words,
                history_turns=settings.auto_memory_history_turns,
            ),
            name="auto_memory",
        )
