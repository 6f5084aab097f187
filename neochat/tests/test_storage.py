"""Tests for the SQLAlchemy repositories (conversations, memory, settings, servers)."""

import json

import pytest

from neochat.domain.errors import NotFoundError, ValidationError
from neochat.modules.config import mask_settings
from neochat.modules.storage import DEFAULT_CONVERSATION_TITLE, MemoryLimitError, MemoryRepository, SaveStatus

from conftest import OTHER_USER, USER


class TestConversationRepository:

    def test_create_and_get_is_owner_scoped(self, conversation_repo):
        conv = conversation_repo.create_conversation(USER)

        assert conv["title"] == DEFAULT_CONVERSATION_TITLE
        assert conversation_repo.get_conversation(conv["id"], USER)["id"] == conv["id"]
        assert conversation_repo.get_conversation(conv["id"], OTHER_USER) is None

    def test_messages_keep_insertion_order(self, conversation_repo):
        conv = conversation_repo.create_conversation(USER)
        for i in range(5):
            conversation_repo.add_message(conv["id"], "user" if i % 2 == 0 else "assistant", f"m{i}")

        messages = conversation_repo.list_messages(conv["id"], USER)

        assert [m["content"] for m in messages] == ["m0", "m1", "m2", "m3", "m4"]
        assert [m["content"] for m in conversation_repo.recent_messages(conv["id"], 2)] == ["m3", "m4"]

    def test_list_messages_of_foreign_conversation(self, conversation_repo):
        conv = conversation_repo.create_conversation(USER)
        with pytest.raises(NotFoundError):
            conversation_repo.list_messages(conv["id"], OTHER_USER)

    def test_invalid_role_rejected(self, conversation_repo):
        conv = conversation_repo.create_conversation(USER)
        with pytest.raises(ValidationError):
            conversation_repo.add_message(conv["id"], "wizard", "hi")

    def test_list_includes_last_message(self, conversation_repo):
        conv = conversation_repo.create_conversation(USER, title="Trip")
        conversation_repo.add_message(conv["id"], "user", "Plan a trip")
        conversation_repo.add_message(conv["id"], "assistant", "Sure!")
        conversation_repo.create_conversation(OTHER_USER)

        listed = conversation_repo.list_conversations(USER)

        assert len(listed) == 1
        assert listed[0]["title"] == "Trip"
        assert listed[0]["last_message"] == "Sure!"

    def test_rename_and_generated_title(self, conversation_repo):
        conv = conversation_repo.create_conversation(USER)
        assert conversation_repo.set_generated_title(conv["id"], "Auto title")
        assert conversation_repo.get_conversation(conv["id"], USER)["title"] == "Auto title"

        assert conversation_repo.rename_conversation(conv["id"], USER, "Mine")
        # Generated titles never overwrite a custom one
        assert not conversation_repo.set_generated_title(conv["id"], "Another")
        assert conversation_repo.get_conversation(conv["id"], USER)["title"] == "Mine"

        assert not conversation_repo.rename_conversation(conv["id"], OTHER_USER, "Stolen")
        with pytest.raises(ValidationError):
            conversation_repo.rename_conversation(conv["id"], USER, "   ")

    def test_delete_removes_messages(self, conversation_repo):
        conv = conversation_repo.create_conversation(USER)
        conversation_repo.add_message(conv["id"], "user", "hello")

        assert not conversation_repo.delete_conversation(conv["id"], OTHER_USER)
        assert conversation_repo.delete_conversation(conv["id"], USER)
        assert conversation_repo.count_messages(conv["id"]) == 0
        assert conversation_repo.get_conversation(conv["id"], USER) is None

    def test_truncate_from_user_message(self, conversation_repo):
        conv = conversation_repo.create_conversation(USER)
        conversation_repo.add_message(conv["id"], "user", "first")
        conversation_repo.add_message(conv["id"], "assistant", "reply one")
        edited = conversation_repo.add_message(conv["id"], "user", "second")
        conversation_repo.add_message(conv["id"], "assistant", "reply two")

        deleted = conversation_repo.truncate_from_message(conv["id"], USER, edited["id"])

        assert deleted == 2
        remaining = conversation_repo.list_messages(conv["id"], USER)
        assert [m["content"] for m in remaining] == ["first", "reply one"]
        # Sequence numbers continue after the truncation point
        conversation_repo.add_message(conv["id"], "user", "second, edited")
        assert conversation_repo.list_messages(conv["id"], USER)[-1]["content"] == "second, edited"

    def test_truncate_rejects_assistant_and_unknown_messages(self, conversation_repo):
        conv = conversation_repo.create_conversation(USER)
        conversation_repo.add_message(conv["id"], "user", "q")
        answer = conversation_repo.add_message(conv["id"], "assistant", "a")

        with pytest.raises(ValidationError):
            conversation_repo.truncate_from_message(conv["id"], USER, answer["id"])
        with pytest.raises(NotFoundError):
            conversation_repo.truncate_from_message(conv["id"], USER, "missing")
        with pytest.raises(NotFoundError):
            conversation_repo.truncate_from_message(conv["id"], OTHER_USER, answer["id"])


class TestMemoryRepository:

    def test_add_dedups_ignoring_case(self, memory_repo):
        status, fact = memory_repo.add_fact(USER, "  Prefers Rust  ")
        dup_status, dup = memory_repo.add_fact(USER, "prefers rust")

        assert status is SaveStatus.SAVED
        assert fact["content"] == "Prefers Rust"
        assert dup_status is SaveStatus.DUPLICATE
        assert dup["id"] == fact["id"]
        assert memory_repo.count_facts(USER) == 1

    def test_same_fact_for_two_users(self, memory_repo):
        memory_repo.add_fact(USER, "Likes tea")
        status, _ = memory_repo.add_fact(OTHER_USER, "Likes tea")
        assert status is SaveStatus.SAVED

    def test_cap_is_enforced(self, session_factory):
        repo = MemoryRepository(session_factory, fact_limit=2)
        repo.add_fact(USER, "one")
        repo.add_fact(USER, "two")

        # A duplicate at the cap is still reported as a duplicate
        assert repo.add_fact(USER, "ONE")[0] is SaveStatus.DUPLICATE
        with pytest.raises(MemoryLimitError):
            repo.add_fact(USER, "three")

    def test_validation(self, session_factory):
        repo = MemoryRepository(session_factory, max_chars=10)
        with pytest.raises(ValidationError):
            repo.add_fact(USER, "")
        with pytest.raises(ValidationError):
            repo.add_fact(USER, "x" * 11)

    def test_update_delete_clear(self, memory_repo):
        _, fact = memory_repo.add_fact(USER, "Lives in Oslo")
        memory_repo.add_fact(USER, "Has a dog")

        assert memory_repo.update_fact(USER, fact["id"], "Lives in Bergen")
        assert not memory_repo.update_fact(OTHER_USER, fact["id"], "Hijack")
        assert "Lives in Bergen" in [f["content"] for f in memory_repo.list_facts(USER)]

        assert not memory_repo.delete_fact(OTHER_USER, fact["id"])
        assert memory_repo.delete_fact(USER, fact["id"])
        assert memory_repo.clear_facts(USER) == 1
        assert memory_repo.list_facts(USER) == []


class TestSettingsRepository:

    def test_defaults_overlay_and_unknown_keys(self, settings_repo):
        written = settings_repo.update(USER, {"model": "gpt-5", "bogus": "x", "temperature": 0.3, "chat_mode": None})

        assert written == {"model": "gpt-5", "temperature": "0.3"}
        effective = settings_repo.get_effective(USER)
        assert effective["model"] == "gpt-5"
        assert effective["memory_enabled"] == "1"
        assert "bogus" not in effective
        assert settings_repo.get_effective(OTHER_USER)["model"] == "gpt-5-mini"

    def test_over_long_values_are_skipped(self, settings_repo):
        written = settings_repo.update(USER, {"custom_instructions": "x" * 4001})
        assert written == {}

    def test_update_overwrites(self, settings_repo):
        settings_repo.update(USER, {"openai_api_key": "sk-1"})
        settings_repo.update(USER, {"openai_api_key": "sk-2"})
        assert settings_repo.get_stored(USER) == {"openai_api_key": "sk-2"}

    def test_masking_never_exposes_secrets(self, settings_repo):
        settings_repo.update(USER, {"openai_api_key": "sk-secret", "tavily_api_key": ""})

        masked = mask_settings(settings_repo.get_effective(USER))

        assert masked["openai_api_key_set"] is True
        assert masked["tavily_api_key_set"] is False
        assert "sk-secret" not in json.dumps(masked)
        assert "openai_api_key" not in masked


class TestRemoteServerRepository:

    def test_create_list_and_enabled(self, server_repo):
        first = server_repo.create_server(USER, "Alpha", "https://alpha.example.com/mcp")
        second = server_repo.create_server(
            USER, "Beta", "https://beta.example.com/mcp", auth_type="token", auth_token="tok"
        )
        server_repo.update_server(first["id"], USER, enabled=False)

        listed = server_repo.list_servers(USER)
        enabled = server_repo.list_enabled(USER)

        assert [s["name"] for s in listed] == ["Alpha", "Beta"]
        assert "auth_data" not in listed[1]
        assert [s["id"] for s in enabled] == [second["id"]]
        assert json.loads(enabled[0]["auth_data"]) == {"token": "tok"}

    def test_validation_and_ownership(self, server_repo):
        with pytest.raises(ValidationError):
            server_repo.create_server(USER, "  ", "https://x.example.com")
        with pytest.raises(ValidationError):
            server_repo.create_server(USER, "X", "https://x.example.com", auth_type="kerberos")

        server = server_repo.create_server(USER, "X", "https://x.example.com")
        assert server_repo.update_server(server["id"], OTHER_USER, name="Y") is None
        assert not server_repo.delete_server(server["id"], OTHER_USER)
        assert server_repo.delete_server(server["id"], USER)
        assert server_repo.list_servers(USER) == []
