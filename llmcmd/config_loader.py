"""
Configuration loader for LLMCMD.
Reads the repo-level `.llm-commands.yaml` and validates it into typed commands.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

DEFAULT_CONFIG_PATH = ".llm-commands.yaml"

# Sentinel for instructions that only need reference files / PR context.
APPLY_TO_NONE = "none"


class ConfigError(Exception):
    """Raised when the command configuration is missing or invalid."""
    pass


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

class _ConfigModel(BaseModel):
    # YAML is written in camelCase; code reads snake_case
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class FileReference(_ConfigModel):
    path: str
    name: str | None = None


class Instruction(_ConfigModel):
    apply_to: str = Field(default=APPLY_TO_NONE, alias="applyTo")
    prompt: str
    reference_files: list[FileReference] = Field(default_factory=list, alias="files")
    modified_only: bool = Field(default=True, alias="modifiedOnly")

    @property
    def targets_files(self) -> bool:
        return self.apply_to != APPLY_TO_NONE


class CommandDefinition(_ConfigModel):
    description: str = ""
    instructions: list[Instruction] = Field(min_length=1)
    can_execute_from_comment: bool = Field(default=True, alias="canExecuteFromComment")


class LLMClientConfig(_ConfigModel):
    provider: str
    options: dict[str, Any] = Field(default_factory=dict)

    def resolved_options(self) -> dict[str, Any]:
        """Copy of `options` with an `env.VARNAME` api_key swapped for the variable's value."""
        options = dict(self.options)
        api_key = options.get("api_key")
        if isinstance(api_key, str) and api_key.startswith("env."):
            var = api_key[len("env."):]
            value = os.environ.get(var)
            if value:
                options["api_key"] = value
            else:
                logger.warning(f"[CONFIG] api_key references ${var}, which is not set")
                options.pop("api_key")
        return options


def _default_large() -> LLMClientConfig:
    return LLMClientConfig(
        provider="openai",
        options={"model": "gpt-4o", "api_key": "env.OPENAI_API_KEY"},
    )


def _default_small() -> LLMClientConfig:
    return LLMClientConfig(
        provider="openai",
        options={"model": "gpt-4o-mini", "api_key": "env.OPENAI_API_KEY"},
    )


class LLMClientsConfig(_ConfigModel):
    large: LLMClientConfig = Field(default_factory=_default_large)
    small: LLMClientConfig = Field(default_factory=_default_small)


class CommandsConfig(_ConfigModel):
    handle: str | None = None
    plan: bool = False
    llm_clients: LLMClientsConfig = Field(default_factory=LLMClientsConfig, alias="llm-clients")
    commands: dict[str, CommandDefinition]


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load_config(workspace: Path, config_path: str | None = None) -> CommandsConfig:
    """
    Load and validate the command configuration.

    `config_path` is resolved against the workspace unless it is absolute.
    Any problem (missing file, bad YAML, schema violation) is a ConfigError.
    """
    path = Path(config_path or DEFAULT_CONFIG_PATH)
    if not path.is_absolute():
        path = workspace / path

    if not path.exists():
        raise ConfigError(f"Configuration file not found at {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw: Any = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse configuration file {path}: {e}") from e

    if not isinstance(raw, dict) or not isinstance(raw.get("commands"), dict):
        raise ConfigError(f"Invalid configuration in {path}: commands section is required")

    try:
        config = CommandsConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info(f"[CONFIG] Loaded {len(config.commands)} commands from {path.name}")
    return config


def get_commands_to_run(
    config: CommandsConfig,
    requested: list[str],
    from_comment: bool = False,
) -> list[str]:
    """Filter requested names down to configured commands, preserving request order."""
    selected: list[str] = []
    for name in requested:
        name = name.strip()
        if not name or name in selected:
            continue
        command = config.commands.get(name)
        if command is None:
            logger.debug(f"[CONFIG] Ignoring unknown command: {name}")
            continue
        if from_comment and not command.can_execute_from_comment:
            logger.info(f"[CONFIG] Command {name} cannot be triggered from a comment")
            continue
        selected.append(name)
    return selected


def get_comment_enabled_commands(config: CommandsConfig) -> list[tuple[str, str]]:
    return [
        (name, command.description)
        for name, command in config.commands.items()
        if command.can_execute_from_comment
    ]
