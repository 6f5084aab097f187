"""Per-user setting keys, their defaults and masking rules.

User settings are stored as a sparse key -> string map. Anything not stored
falls back to ``SETTING_DEFAULTS``; anything not in ``SETTING_KEYS`` is ignored
on write.
"""

from typing import Dict, Mapping

DEFAULT_SYSTEM_PROMPT = "You are a helpful, harmless, and honest AI assistant."

SETTING_KEYS = frozenset({
    "model",
    "provider",
    "temperature",
    "memory_enabled",
    "auto_memory",
    "system_prompt",
    "custom_instructions",
    "openai_api_key",
    "tavily_api_key",
    "chat_mode",
    "stream_enabled",
})

SECRET_KEYS = ("openai_api_key", "tavily_api_key")

SETTING_DEFAULTS: Dict[str, str] = {
    "model": "gpt-5-mini",
    "provider": "openai",
    "temperature": "0.7",
    "memory_enabled": "1",
    "auto_memory": "1",
    "system_prompt": DEFAULT_SYSTEM_PROMPT,
    "custom_instructions": "",
    "stream_enabled": "1",
    "chat_mode": "normal",
}

SETTING_MAX_LENGTHS: Dict[str, int] = {
    "custom_instructions": 4000,
    "system_prompt": 4000,
    "model": 64,
    "provider": 64,
    "chat_mode": 32,
}


def mask_settings(settings: Mapping[str, str]) -> Dict[str, object]:
    """Replace every secret with a ``<key>_set`` boolean."""
    masked: Dict[str, object] = dict(settings)
    for key in SECRET_KEYS:
        value = masked.pop(key, None)
        masked[f"{key}_set"] = bool(value and str(value).strip())
    return masked
