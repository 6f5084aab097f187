"""Tests for environment settings and the model catalog lookup."""

from pathlib import Path

from neochat.modules.config import AppSettings, ConfigManager

PACKAGE_ROOT = Path(__file__).resolve().parent.parent


def test_defaults():
    settings = AppSettings()
    assert settings.max_tool_rounds == 10
    assert settings.history_window == 60
    assert settings.tool_result_preview_chars == 600
    assert settings.memory_fact_limit == 500
    assert settings.auto_memory_max_facts == 5
    assert settings.auto_memory_max_words == 15


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("HISTORY_WINDOW", "20")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///tmp/other.db")
    monkeypatch.setenv("CODE_EXECUTOR_URL", "https://exec.example.com")

    settings = AppSettings()

    assert settings.history_window == 20
    assert settings.database_url == "sqlite:///tmp/other.db"
    assert settings.code_executor_url == "https://exec.example.com"


def test_package_model_catalog_is_loaded(monkeypatch, tmp_path):
    monkeypatch.setenv("APP_CONFIG_DIR", str(tmp_path / "missing"))
    manager = ConfigManager(package_root=PACKAGE_ROOT)

    catalog = manager.model_catalog

    ids = [m.id for m in catalog.providers["openai"]]
    assert "gpt-5-mini" in ids
    assert manager.validate_config() == {"app_settings": True, "model_catalog": True}


def test_user_config_dir_overrides_package_defaults(monkeypatch, tmp_path):
    (tmp_path / "models.yml").write_text(
        "providers:\n  openai:\n    - id: custom-model\n      name: Custom\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("APP_CONFIG_DIR", str(tmp_path))
    manager = ConfigManager(package_root=PACKAGE_ROOT)

    assert manager.model_catalog.as_response() == {
        "openai": [{"id": "custom-model", "name": "Custom", "context": 128000}]
    }


def test_broken_catalog_falls_back_to_empty(monkeypatch, tmp_path):
    (tmp_path / "models.yml").write_text("- just\n- a list\n", encoding="utf-8")
    empty_pkg = tmp_path / "pkg"
    empty_pkg.mkdir()
    monkeypatch.setenv("APP_CONFIG_DIR", str(tmp_path))
    manager = ConfigManager(package_root=empty_pkg)

    assert manager.model_catalog.providers == {}
    assert manager.validate_config()["model_catalog"] is False
