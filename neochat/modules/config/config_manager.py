"""
Centralized configuration management using Pydantic models.

This module provides a unified configuration system that:
- Uses pydantic-settings for type validation and environment variable loading
- Loads the model catalog (models.yml) from the user config dir or package defaults
- Keeps product policy constants (memory caps, round limits, timeouts) in one place
- Supports both .env files and direct environment variables
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class ModelInfo(BaseModel):
    """A model offered to users in the settings dialog."""
    id: str
    name: str
    context: int = 128000
    description: Optional[str] = None


class ModelCatalog(BaseModel):
    """Models grouped by provider id."""
    providers: Dict[str, List[ModelInfo]] = Field(default_factory=dict)

    @field_validator("providers", mode="before")
    @classmethod
    def validate_providers(cls, v):
        """Convert raw dict entries to ModelInfo objects."""
        if isinstance(v, dict):
            return {
                provider: [ModelInfo(**m) if isinstance(m, dict) else m for m in (models or [])]
                for provider, models in v.items()
            }
        return v

    def as_response(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            provider: [m.model_dump(exclude_none=True) for m in models]
            for provider, models in self.providers.items()
        }


class AppSettings(BaseSettings):
    """Main application settings loaded from environment variables."""

    # Application settings
    app_name: str = "NeoChat"
    port: int = 8000
    debug_mode: bool = False
    # Logging settings
    log_level: str = "INFO"  # Override default logging level (DEBUG, INFO, WARNING, ERROR)
    feature_metrics_logging_enabled: bool = Field(
        False,
        description="Enable metrics logging for user activities (LLM calls, tool calls, memory writes)",
        validation_alias=AliasChoices("FEATURE_METRICS_LOGGING_ENABLED"),
    )
    # Suppress LiteLLM verbose logging (independent of log_level)
    feature_suppress_litellm_logging: bool = Field(
        default=True,
        description="Suppress LiteLLM verbose stdout/debug output by setting LITELLM_LOG=ERROR",
        validation_alias=AliasChoices("FEATURE_SUPPRESS_LITELLM_LOGGING"),
    )

    # Persistence
    database_url: str = Field(
        default="sqlite:///data/neochat.db",
        description="SQLAlchemy URL for conversations, settings, memory and remote servers",
        validation_alias=AliasChoices("DATABASE_URL", "NEOCHAT_DATABASE_URL"),
    )

    # Authentication header configuration
    test_user: str = "test@test.com"  # Test user for development
    auth_user_header: str = Field(
        default="X-User-Id",
        description="HTTP header name to extract the authenticated user id from reverse proxy",
        validation_alias="AUTH_USER_HEADER",
    )

    # Orchestration policy
    max_tool_rounds: int = Field(default=10, validation_alias="MAX_TOOL_ROUNDS")
    history_window: int = Field(default=60, validation_alias="HISTORY_WINDOW")
    tool_result_preview_chars: int = Field(default=600, validation_alias="TOOL_RESULT_PREVIEW_CHARS")
    auxiliary_model: str = Field(
        default="gpt-5-mini",
        description="Model used for titling, memory extraction and research planning",
        validation_alias="AUXILIARY_MODEL",
    )

    # Memory policy
    memory_fact_limit: int = Field(default=500, validation_alias="MEMORY_FACT_LIMIT")
    memory_fact_max_chars: int = Field(default=1000, validation_alias="MEMORY_FACT_MAX_CHARS")
    auto_memory_max_facts: int = Field(default=5, validation_alias="AUTO_MEMORY_MAX_FACTS")
    auto_memory_max_words: int = Field(default=15, validation_alias="AUTO_MEMORY_MAX_WORDS")
    auto_memory_history_turns: int = 10

    # Remote MCP servers
    remote_tool_timeout_seconds: float = Field(default=10.0, validation_alias="REMOTE_TOOL_TIMEOUT_SECONDS")
    remote_server_name_max_chars: int = 120

    # Web search (Tavily)
    search_api_url: str = Field(default="https://api.tavily.com/search", validation_alias="SEARCH_API_URL")
    web_search_timeout_seconds: float = Field(default=20.0, validation_alias="WEB_SEARCH_TIMEOUT_SECONDS")
    research_search_timeout_seconds: float = Field(default=25.0, validation_alias="RESEARCH_SEARCH_TIMEOUT_SECONDS")

    # Image generation
    image_model: str = Field(default="dall-e-3", validation_alias="IMAGE_MODEL")

    # Code execution service
    code_executor_url: Optional[str] = Field(
        default=None,
        description="Base URL of the sandboxed code execution service; /api/ai/exec is disabled when unset",
        validation_alias="CODE_EXECUTOR_URL",
    )
    code_executor_timeout_seconds: float = Field(default=30.0, validation_alias="CODE_EXECUTOR_TIMEOUT_SECONDS")
    code_max_bytes: int = 50_000

    # Rate limiting for code execution (per user, fixed window)
    exec_rate_limit_rpm: int = Field(default=30, validation_alias="EXEC_RATE_LIMIT_RPM")
    exec_rate_limit_window_seconds: int = Field(default=60, validation_alias="EXEC_RATE_LIMIT_WINDOW_SECONDS")

    # PDF attachment parsing
    pdf_max_bytes: int = 10 * 1024 * 1024
    pdf_text_max_chars: int = 200_000

    # Chat request limits
    chat_message_max_chars: int = 100_000
    chat_max_attachments: int = 10
    chat_attachment_max_bytes: int = 20 * 1024 * 1024

    # Config file names (can be overridden via environment variables)
    models_config_file: str = Field(default="models.yml", validation_alias="MODELS_CONFIG_FILE")

    # Config directory path (user customizations; falls back to neochat/config/ for defaults)
    app_config_dir: str = Field(default="config", validation_alias="APP_CONFIG_DIR")

    # Logging directory
    app_log_dir: Optional[str] = Field(default=None, validation_alias="APP_LOG_DIR")

    # Environment mode
    environment: str = Field(default="production", validation_alias="ENVIRONMENT")

    # Security headers toggles (HSTS intentionally omitted)
    security_csp_enabled: bool = Field(default=True, validation_alias="SECURITY_CSP_ENABLED")
    security_csp_value: str | None = Field(
        default="default-src 'self'; img-src 'self' data:; font-src 'self' data:; script-src 'self'; style-src 'self' 'unsafe-inline'; connect-src 'self'; frame-ancestors 'self'",
        validation_alias="SECURITY_CSP_VALUE",
    )
    security_xfo_enabled: bool = Field(default=True, validation_alias="SECURITY_XFO_ENABLED")
    security_xfo_value: str = Field(default="SAMEORIGIN", validation_alias="SECURITY_XFO_VALUE")
    security_nosniff_enabled: bool = Field(default=True, validation_alias="SECURITY_NOSNIFF_ENABLED")
    security_referrer_policy_enabled: bool = Field(default=True, validation_alias="SECURITY_REFERRER_POLICY_ENABLED")
    security_referrer_policy_value: str = Field(default="no-referrer", validation_alias="SECURITY_REFERRER_POLICY_VALUE")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "env_prefix": "",
    }


class ConfigManager:
    """Centralized configuration manager with proper error handling."""

    def __init__(self, package_root: Optional[Path] = None):
        self._package_root = package_root or Path(__file__).parent.parent.parent
        self._app_settings: Optional[AppSettings] = None
        self._model_catalog: Optional[ModelCatalog] = None

    def _search_paths(self, file_name: str) -> List[Path]:
        """Generate search paths for a configuration file.

        Two-layer lookup:
        1. User config dir (APP_CONFIG_DIR, default "config/") - user customizations
        2. Package defaults (neochat/config/) - always available as fallback
        """
        project_root = self._package_root.parent

        config_dir = Path(self.app_settings.app_config_dir)
        if not config_dir.is_absolute():
            config_dir_project = project_root / config_dir
        else:
            config_dir_project = config_dir

        package_defaults = self._package_root / "config" / file_name

        candidates: List[Path] = [
            config_dir / file_name,
            config_dir_project / file_name,
            package_defaults,
        ]

        seen = set()
        search_paths: List[Path] = []
        for p in candidates:
            if p not in seen:
                seen.add(p)
                search_paths.append(p)

        logger.debug(
            "Config search paths for %s: %s", file_name, [str(p) for p in search_paths]
        )
        return search_paths

    def _load_file_with_error_handling(self, file_paths: List[Path], file_type: str) -> Optional[Dict[str, Any]]:
        """Load a file with comprehensive error handling and logging."""
        for path in file_paths:
            try:
                if not path.exists():
                    continue

                logger.info(f"Found {file_type} config at: {path.absolute()}")

                with open(path, "r", encoding="utf-8") as f:
                    if file_type.lower() == "yaml":
                        data = yaml.safe_load(f)
                    elif file_type.lower() == "json":
                        data = json.load(f)
                    else:
                        raise ValueError(f"Unsupported file type: {file_type}")

                if not isinstance(data, dict):
                    logger.error(
                        f"Invalid {file_type} format in {path}: expected dict, got {type(data)}",
                        exc_info=True
                    )
                    continue

                logger.info(f"Successfully loaded {file_type} config from {path}")
                return data

            except (yaml.YAMLError, json.JSONDecodeError) as e:
                logger.error(f"{file_type} parsing error in {path}: {e}", exc_info=True)
                continue
            except OSError as e:
                logger.error(f"Unexpected error reading {path}: {e}", exc_info=True)
                continue

        logger.warning(f"{file_type} config not found in any of these locations: {[str(p) for p in file_paths]}")
        return None

    @property
    def app_settings(self) -> AppSettings:
        """Get application settings (cached)."""
        if self._app_settings is None:
            self._app_settings = AppSettings()
            logger.info("Application settings loaded successfully")
        return self._app_settings

    @property
    def model_catalog(self) -> ModelCatalog:
        """Get the model catalog (cached)."""
        if self._model_catalog is None:
            file_paths = self._search_paths(self.app_settings.models_config_file)
            data = self._load_file_with_error_handling(file_paths, "YAML")
            try:
                if data:
                    self._model_catalog = ModelCatalog(**data)
                    logger.info(
                        "Loaded model catalog for providers: %s",
                        ", ".join(self._model_catalog.providers) or "(none)",
                    )
                else:
                    self._model_catalog = ModelCatalog()
                    logger.info("Created empty model catalog (no configuration file found)")
            except ValueError as e:
                logger.error(f"Failed to parse model catalog: {e}", exc_info=True)
                self._model_catalog = ModelCatalog()
        return self._model_catalog

    def reload_configs(self) -> None:
        """Reload all configurations from files."""
        self._app_settings = None
        self._model_catalog = None
        logger.info("Configuration cache cleared, will reload on next access")

    def validate_config(self) -> Dict[str, bool]:
        """Validate all configurations and return status."""
        status = {}

        try:
            self.app_settings
            status["app_settings"] = True
        except ValueError as e:
            logger.error(f"App settings validation failed: {e}", exc_info=True)
            status["app_settings"] = False

        catalog = self.model_catalog
        status["model_catalog"] = any(catalog.providers.values())
        if not status["model_catalog"]:
            logger.warning("Model catalog is valid but contains no models")

        return status


# Global configuration manager instance
config_manager = ConfigManager()


# Convenience functions for easy access
def get_app_settings() -> AppSettings:
    """Get application settings."""
    return config_manager.app_settings


def get_model_catalog() -> ModelCatalog:
    """Get the model catalog."""
    return config_manager.model_catalog
