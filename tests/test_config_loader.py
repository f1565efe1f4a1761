import pytest

from llmcmd.config_loader import (
    ConfigError,
    get_commands_to_run,
    get_comment_enabled_commands,
    load_config,
)

from conftest import command, make_config

CONFIG = """
handle: "@reviewbot"
plan: true
llm-clients:
  large:
    provider: anthropic
    options:
      model: claude-sonnet-4
      api_key: env.ANTHROPIC_API_KEY
commands:
  lint:
    description: Lint python files
    instructions:
      - applyTo: "**/*.py"
        prompt: Lint these files
        files:
          - path: docs/style.md
            name: Style guide
  summary:
    description: Summarize the PR
    canExecuteFromComment: false
    instructions:
      - prompt: Summarize the PR
"""


def test_load_config_parses_camel_case(tmp_path):
    (tmp_path / ".llm-commands.yaml").write_text(CONFIG)
    config = load_config(tmp_path)

    assert config.handle == "@reviewbot"
    assert config.plan is True
    lint = config.commands["lint"]
    assert lint.instructions[0].apply_to == "**/*.py"
    assert lint.instructions[0].modified_only is True
    assert lint.instructions[0].reference_files[0].name == "Style guide"

    summary = config.commands["summary"]
    assert summary.can_execute_from_comment is False
    assert summary.instructions[0].apply_to == "none"
    assert summary.instructions[0].targets_files is False


def test_llm_clients_default_when_absent(tmp_path):
    (tmp_path / ".llm-commands.yaml").write_text(CONFIG)
    config = load_config(tmp_path)

    assert config.llm_clients.large.provider == "anthropic"
    assert config.llm_clients.small.provider == "openai"
    assert config.llm_clients.small.options["model"] == "gpt-4o-mini"


def test_custom_config_path(tmp_path):
    (tmp_path / "ci").mkdir()
    (tmp_path / "ci" / "commands.yml").write_text(CONFIG)
    config = load_config(tmp_path, "ci/commands.yml")
    assert set(config.commands) == {"lint", "summary"}


def test_missing_file_is_config_error(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path)


def test_invalid_yaml_is_config_error(tmp_path):
    (tmp_path / ".llm-commands.yaml").write_text("commands: [unclosed")
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_missing_commands_section_is_config_error(tmp_path):
    (tmp_path / ".llm-commands.yaml").write_text("handle: '@bot'\n")
    with pytest.raises(ConfigError, match="commands section is required"):
        load_config(tmp_path)


def test_command_without_instructions_is_config_error(tmp_path):
    (tmp_path / ".llm-commands.yaml").write_text(
        "commands:\n  empty:\n    description: nothing\n    instructions: []\n"
    )
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_api_key_env_indirection(monkeypatch):
    config = make_config({"a": command("x")})
    client = config.llm_clients.large

    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    assert client.resolved_options()["api_key"] == "sk-test"
    # the stored options keep the pointer
    assert client.options["api_key"] == "env.OPENAI_API_KEY"

    monkeypatch.delenv("OPENAI_API_KEY")
    assert "api_key" not in client.resolved_options()


def test_get_commands_to_run_filters_and_dedupes():
    config = make_config({"lint": command("lint"), "review": command("review")})
    assert get_commands_to_run(config, [" review", "nope", "lint", "review"]) == ["review", "lint"]


def test_comment_triggers_respect_can_execute_from_comment():
    config = make_config({
        "lint": command("lint"),
        "summary": command("summary", canExecuteFromComment=False),
    })
    assert get_commands_to_run(config, ["lint", "summary"], from_comment=True) == ["lint"]
    assert get_commands_to_run(config, ["lint", "summary"]) == ["lint", "summary"]
    assert get_comment_enabled_commands(config) == [("lint", "lint command")]
