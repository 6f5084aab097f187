"""Configuration module: environment settings, model catalog and per-user setting keys."""

from .config_manager import (
    AppSettings,
    ConfigManager,
    ModelCatalog,
    ModelInfo,
    config_manager,
    get_app_settings,
    get_model_catalog,
)
from .user_settings import (
    DEFAULT_SYSTEM_PROMPT,
    SECRET_KEYS,
    SETTING_DEFAULTS,
    SETTING_KEYS,
    SETTING_MAX_LENGTHS,
    mask_settings,
)

__all__ = [
    "AppSettings",
    "ConfigManager",
    "ModelCatalog",
    "ModelInfo",
    "config_manager",
    "get_app_settings",
    "get_model_catalog",
    "DEFAULT_SYSTEM_PROMPT",
    "SECRET_KEYS",
    "SETTING_DEFAULTS",
    "SETTING_KEYS",
    "SETTING_MAX_LENGTHS",
    "mask_settings",
]
