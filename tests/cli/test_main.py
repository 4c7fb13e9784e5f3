"""Tests for CLI commands, run in-process with fakes for Drive and the chat model."""

import json

import pytest
from typer.testing import CliRunner

from src.cli import main as cli_main
from src.cli.config import DriveChatConfig
from src.services.provider_settings import ProviderSettingsStore
from tests.helpers import FakeDrive, FakeKeyringStore, ScriptedChatModel

runner = CliRunner()


class CliEnv:
    """Handles on the fakes a CLI invocation runs against."""

    def __init__(self, drive: FakeDrive, store: ProviderSettingsStore) -> None:
        self.drive = drive
        self.store = store
        self.config = DriveChatConfig(user_id="alice", chat={"settle_delay_seconds": 0.01})
        self.deltas = ["Hi", " there"]
        self.error: Exception | None = None
        self.models: list[ScriptedChatModel] = []


@pytest.fixture
def env(monkeypatch, session_factory) -> CliEnv:
    store = ProviderSettingsStore(None, FakeKeyringStore())
    state = CliEnv(FakeDrive(), store)

    def make_model(config):
        model = ScriptedChatModel(state.deltas, state.error)
        state.models.append(model)
        return model

    monkeypatch.setattr(cli_main, "_load", lambda: state.config)
    monkeypatch.setattr(cli_main, "_build_drive", lambda cfg: state.drive)
    monkeypatch.setattr(cli_main, "_provider_store", lambda: store)
    monkeypatch.setattr(cli_main, "_db_session", session_factory)
    monkeypatch.setattr(cli_main, "create_chat_model", make_model)
    return state


class TestAsk:
    def test_success(self, env):
        result = runner.invoke(cli_main.app, ["ask", "create a folder called Reports"])
        assert result.exit_code == 0, result.output
        assert "Reports" in result.output
        assert env.drive.call_names() == ["create_folder"]

    def test_json(self, env):
        result = runner.invoke(cli_main.app, ["ask", "list my files", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["operations"][0]["type"] == "list_files"

    def test_error_exits_nonzero(self, env):
        result = runner.invoke(cli_main.app, ["ask", "delete ghost.txt"])
        assert result.exit_code == 1


class TestRepl:
    def test_turns_until_exit(self, env):
        result = runner.invoke(
            cli_main.app, ["repl"], input="create a folder called Reports\n\nquit\n"
        )
        assert result.exit_code == 0, result.output
        assert env.drive.call_names() == ["create_folder"]
        assert "Session ended." in result.output

    def test_eof_ends_session(self, env):
        result = runner.invoke(cli_main.app, ["repl"], input="")
        assert result.exit_code == 0
        assert "Session ended." in result.output


class TestThreads:
    def test_new_and_list(self, env):
        assert runner.invoke(cli_main.app, ["threads", "new"]).exit_code == 0
        created = runner.invoke(cli_main.app, ["threads", "new", "--title", "Budget"])
        assert "alice-2" in created.output

        listed = runner.invoke(cli_main.app, ["threads", "list", "--json"])
        assert listed.exit_code == 0
        assert {t["title"] for t in json.loads(listed.output)} == {"Chat 1", "Budget"}

    def test_list_empty(self, env):
        result = runner.invoke(cli_main.app, ["threads", "list"])
        assert "No threads found." in result.output

    def test_rename(self, env):
        runner.invoke(cli_main.app, ["threads", "new"])
        result = runner.invoke(cli_main.app, ["threads", "rename", "alice-1", "Plans"])
        assert result.exit_code == 0
        assert "Plans" in result.output

    def test_rename_missing(self, env):
        result = runner.invoke(cli_main.app, ["threads", "rename", "alice-4", "Plans"])
        assert result.exit_code == 1

    def test_show_missing(self, env):
        result = runner.invoke(cli_main.app, ["threads", "show", "alice-9"])
        assert result.exit_code == 1
        assert "alice-9" in result.output

    def test_delete(self, env):
        runner.invoke(cli_main.app, ["threads", "new"])
        assert runner.invoke(cli_main.app, ["threads", "delete", "alice-1", "--yes"]).exit_code == 0
        again = runner.invoke(cli_main.app, ["threads", "delete", "alice-1", "--yes"])
        assert again.exit_code == 1

    def test_delete_declined(self, env):
        runner.invoke(cli_main.app, ["threads", "new"])
        result = runner.invoke(cli_main.app, ["threads", "delete", "alice-1"], input="n\n")
        assert result.exit_code == 1
        listed = runner.invoke(cli_main.app, ["threads", "list", "--json"])
        assert len(json.loads(listed.output)) == 1


class TestProviders:
    def test_configure_selects(self, env):
        result = runner.invoke(
            cli_main.app, ["providers", "configure", "anthropic", "--api-key", "sk-ant"]
        )
        assert result.exit_code == 0, result.output
        state = env.store.state
        assert state.selected_provider == "anthropic"
        assert env.store.get_api_key("anthropic") == "sk-ant"

    def test_configure_unknown(self, env):
        result = runner.invoke(
            cli_main.app, ["providers", "configure", "cohere", "--api-key", "x"]
        )
        assert result.exit_code == 1

    def test_select_model(self, env):
        env.store.configure_provider("openai", "sk-openai")
        result = runner.invoke(
            cli_main.app, ["providers", "select", "openai", "--model", "gpt-4o-mini"]
        )
        assert result.exit_code == 0, result.output
        assert "openai / gpt-4o-mini" in result.output

    def test_select_unknown_model(self, env):
        env.store.configure_provider("openai", "sk-openai")
        result = runner.invoke(
            cli_main.app, ["providers", "select", "openai", "--model", "claude-3-opus"]
        )
        assert result.exit_code == 1

    def test_list_and_remove(self, env):
        env.store.configure_provider("mistral", "sk-mistral")
        listed = json.loads(runner.invoke(cli_main.app, ["providers", "list", "--json"]).output)
        mistral = next(p for p in listed["providers"] if p["id"] == "mistral")
        assert mistral["configured"] is True

        assert runner.invoke(cli_main.app, ["providers", "remove", "mistral"]).exit_code == 0
        assert env.store.get_api_key("mistral") is None


class TestChat:
    def test_streams_into_new_thread(self, env, session_factory):
        env.store.configure_provider("openai", "sk-openai")
        env.store.select_provider("openai")
        result = runner.invoke(cli_main.app, ["chat", "hello"])
        assert result.exit_code == 0, result.output
        assert "alice-1" in result.output
        assert "Hi there" in result.output

        shown = runner.invoke(cli_main.app, ["threads", "show", "alice-1", "--json"])
        saved = [(m["role"], m["content"]) for m in json.loads(shown.output)]
        assert saved == [("user", "hello"), ("assistant", "Hi there")]

    def test_reuses_most_recent_thread(self, env):
        env.store.configure_provider("openai", "sk-openai")
        env.store.select_provider("openai")
        env.deltas = ["First reply"]
        runner.invoke(cli_main.app, ["chat", "first"])
        env.deltas = ["Second reply"]
        runner.invoke(cli_main.app, ["chat", "second"])
        listed = json.loads(runner.invoke(cli_main.app, ["threads", "list", "--json"]).output)
        assert [t["thread_id"] for t in listed] == ["alice-1"]
        assert listed[0]["message_count"] == 4

    def test_without_provider(self, env):
        result = runner.invoke(cli_main.app, ["chat", "hello"])
        assert result.exit_code == 1
        assert env.models == []

    def test_stream_failure_classified(self, env):
        env.store.configure_provider("openai", "sk-openai")
        env.store.select_provider("openai")
        env.deltas = []
        env.error = RuntimeError("request timed out")
        result = runner.invoke(cli_main.app, ["chat", "hello"])
        assert result.exit_code == 1
        assert "network" in result.output
        assert "took too long" in result.output
