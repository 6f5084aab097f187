"""Application factory for dependency injection and wiring."""

import logging
from typing import Optional

from sqlalchemy.orm import sessionmaker

from neochat.application.chat.service import ChatService, LLMFactory, SearchClientFactory
from neochat.application.chat.utilities.background import BackgroundTaskRunner
from neochat.modules.builtin_tools import TavilySearchClient
from neochat.modules.code_exec import CodeExecutionClient
from neochat.modules.config import ConfigManager
from neochat.modules.llm import LiteLLMCaller
from neochat.modules.mcp_tools import RemoteToolGateway
from neochat.modules.storage import (
    ConversationRepository,
    MemoryRepository,
    RemoteServerRepository,
    SettingsRepository,
    get_session_factory,
)

logger = logging.getLogger(__name__)


class AppFactory:
    """Application factory that wires dependencies (simple in-memory DI).

    The database is touched lazily so importing the factory has no side
    effects; tests pass their own ``session_factory`` and stubbed clients.
    """

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        session_factory: Optional[sessionmaker] = None,
        gateway: Optional[RemoteToolGateway] = None,
        llm_factory: Optional[LLMFactory] = None,
        search_client_factory: Optional[SearchClientFactory] = None,
    ) -> None:
        # Configuration
        if config_manager is None:
            from neochat.modules.config import config_manager as default_config_manager
            config_manager = default_config_manager
        self.config_manager = config_manager
        settings = self.config_manager.app_settings

        self._session_factory = session_factory
        self._conversation_repository: Optional[ConversationRepository] = None
        self._settings_repository: Optional[SettingsRepository] = None
        self._memory_repository: Optional[MemoryRepository] = None
        self._server_repository: Optional[RemoteServerRepository] = None

        # Remote MCP gateway, shared; it holds no per-user state
        self.gateway = gateway or RemoteToolGateway(
            timeout=settings.remote_tool_timeout_seconds,
            client_name=settings.app_name,
        )
        self.llm_factory = llm_factory or self._default_llm_factory
        self.search_client_factory = search_client_factory or self._default_search_client_factory
        self.background = BackgroundTaskRunner()

        logger.info("AppFactory initialized")

    # Factories for per-request clients
    def _default_llm_factory(self, provider: str, api_key: Optional[str], user_id: str) -> LiteLLMCaller:
        settings = self.config_manager.app_settings
        return LiteLLMCaller(
            provider=provider,
            api_key=api_key,
            max_rounds=settings.max_tool_rounds,
            user_id=user_id,
            image_model=settings.image_model,
        )

    def _default_search_client_factory(self, api_key: str) -> TavilySearchClient:
        return TavilySearchClient(api_key, api_url=self.config_manager.app_settings.search_api_url)

    # Persistence
    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        return self._session_factory

    @property
    def conversation_repository(self) -> ConversationRepository:
        if self._conversation_repository is None:
            self._conversation_repository = ConversationRepository(self.session_factory)
        return self._conversation_repository

    @property
    def settings_repository(self) -> SettingsRepository:
        if self._settings_repository is None:
            self._settings_repository = SettingsRepository(self.session_factory)
        return self._settings_repository

    @property
    def memory_repository(self) -> MemoryRepository:
        if self._memory_repository is None:
            settings = self.config_manager.app_settings
            self._memory_repository = MemoryRepository(
                self.session_factory,
                fact_limit=settings.memory_fact_limit,
                max_chars=settings.memory_fact_max_chars,
            )
        return self._memory_repository

    @property
    def server_repository(self) -> RemoteServerRepository:
        if self._server_repository is None:
            self._server_repository = RemoteServerRepository(
                self.session_factory,
                name_max_chars=self.config_manager.app_settings.remote_server_name_max_chars,
            )
        return self._server_repository

    def create_chat_service(self) -> ChatService:
        return ChatService(
            app_settings=self.config_manager.app_settings,
            conversation_repo=self.conversation_repository,
            settings_repo=self.settings_repository,
            memory_repo=self.memory_repository,
            server_repo=self.server_repository,
            gateway=self.gateway,
            llm_factory=self.llm_factory,
            search_client_factory=self.search_client_factory,
            background=self.background,
        )

    def create_code_executor(self) -> Optional[CodeExecutionClient]:
        """None when no execution service is configured."""
        settings = self.config_manager.app_settings
        if not settings.code_executor_url:
            return None
        return CodeExecutionClient(
            settings.code_executor_url,
            timeout=settings.code_executor_timeout_seconds,
            max_bytes=settings.code_max_bytes,
        )

    # Accessors
    def get_config_manager(self) -> ConfigManager:  # noqa: D401
        return self.config_manager


# Global instance used by routes and middleware
app_factory = AppFactory()
