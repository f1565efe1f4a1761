"""
LLMCMD Controller — The Run Loop

It is NOT smart. It is deterministic.

Responsibilities:
  - Work out which commands were requested (input or PR comment)
  - Fetch the pull request and its changed files once
  - Optionally plan the run
  - Execute commands in order, feeding earlier outputs forward
  - Keep going when a command fails
  - Emit run-level outputs and decide success
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, Field

from llmcmd.actions import ActionOutputs
from llmcmd.config_loader import (
    CommandsConfig,
    get_commands_to_run,
    get_comment_enabled_commands,
)
from llmcmd.executor import CommandExecutor
from llmcmd.github import GitHubContext
from llmcmd.matcher import FileMatcher
from llmcmd.models import CommandOutput, ExecutionPlan, PullRequestInfo
from llmcmd.planning import ExecutionPlanner
from llmcmd.references import ReferenceLoader

SLASH_COMMAND = re.compile(r"/([a-zA-Z0-9_-]+)")

RunStatus = Literal["success", "partial", "failed", "skipped"]


# ---------------------------------------------------------------------------
# Command parsing
# ---------------------------------------------------------------------------

def split_commands_input(raw: str) -> list[str]:
    """`lint, review` or one command per line."""
    return [c.strip() for c in re.split(r"[,\n]", raw or "") if c.strip()]


def parse_command_from_comment(body: str, handle: str | None = None) -> list[str]:
    """
    Commands requested by a PR comment.

    With a handle configured, `@handle "request"` wins and yields the quoted
    text as the only request. Otherwise every `/slash-command` is collected.
    """
    if handle:
        handle_pattern = re.compile(rf'{re.escape(handle.replace("@", ""))}\s+"([^"]+)"', re.IGNORECASE)
        match = handle_pattern.search(body)
        if match:
            return [match.group(1).strip()]

    return SLASH_COMMAND.findall(body)


def available_commands_comment(commands: list[tuple[str, str]], handle: str | None = None) -> str:
    slash_commands = "\n".join(f"- `/{name}` - {description}" for name, description in commands)
    handle_example = f'`{handle} "your custom request"`' if handle else '`@llm_command "your custom request"`'

    return f"""## 🤖 LLM Commands Available

You can trigger the following commands by commenting on this PR:

**Slash Commands:**
{slash_commands}

**Custom Handle:**
- {handle_example}

Simply comment with any of the above formats to execute the corresponding command!"""


# ---------------------------------------------------------------------------
# Run result
# ---------------------------------------------------------------------------

class RunResult(BaseModel):
    status: RunStatus = "skipped"
    executed_commands: list[str] = Field(default_factory=list)
    failed_commands: list[str] = Field(default_factory=list)
    summaries: list[str] = Field(default_factory=list)
    outputs: list[CommandOutput] = Field(default_factory=list)
    events: list[dict] = Field(default_factory=list)

    @property
    def commands_summary(self) -> str:
        return "\n".join(self.summaries)


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class RunController:
    """
    Wires the run together. `github` is a GitHubService (or a stand-in with
    the same methods), `backend` a ModelBackend.
    """

    def __init__(
        self,
        config: CommandsConfig,
        context: GitHubContext,
        github: Any,
        backend: Any,
        working_dir: Path,
        outputs: ActionOutputs | None = None,
        debug: bool = False,
        plan: bool | None = None,
    ):
        self.config = config
        self.context = context
        self.github = github
        self.backend = backend
        self.outputs = outputs or ActionOutputs()
        self.plan_enabled = config.plan if plan is None else plan

        self.executor = CommandExecutor(
            github=github,
            backend=backend,
            matcher=FileMatcher(working_dir),
            references=ReferenceLoader(github, working_dir),
            outputs=self.outputs,
            debug=debug,
        )
        self.planner = ExecutionPlanner(backend, github)
        self._result: RunResult | None = None

    def run(self, commands_input: str = "") -> RunResult:
        """Execute the requested commands and emit run-level outputs."""
        self._result = result = RunResult()
        logger.info(f"[RUN] Event: {self.context.event_name or 'local'}")
        logger.info(f"[RUN] Repository: {self.context.owner}/{self.context.repo}")

        # ── 1. What was asked for ──
        from_comment = self.context.event_name == "issue_comment"
        if from_comment:
            if not self.context.is_pull_request_comment:
                logger.info("[RUN] Comment is not on a pull request, skipping")
                return result
            requested = parse_command_from_comment(self.context.comment_body, self.config.handle)
        else:
            requested = split_commands_input(commands_input)

        if not requested:
            logger.warning("[RUN] No commands specified or found in comment")
            return result

        to_run = get_commands_to_run(self.config, requested, from_comment)
        if not to_run:
            logger.warning(
                f"[RUN] No valid commands found. Available commands: {', '.join(self.config.commands)}"
            )
            return result

        logger.info(f"[RUN] Commands to execute: {', '.join(to_run)}")
        self._log_event("commands_selected", {"commands": to_run, "from_comment": from_comment})

        # ── 2. Pull request ──
        pr = self.github.get_pull_request_info()
        if pr is None:
            logger.warning("[RUN] Not in a pull request context - some features may be limited")
            result.summaries.append("No commands executed - not in PR context")
            self._emit(result)
            return result

        if self.context.event_name == "pull_request" and self.context.action == "opened":
            self._post_available_commands(pr)

        changed_files = self.github.get_changed_files(pr)
        logger.info(f"[RUN] Found {len(changed_files)} changed files in PR #{pr.number}")

        # ── 3. Plan (optional, once) ──
        plan: ExecutionPlan = {}
        if self.plan_enabled:
            plan = self.planner.plan(
                {name: self.config.commands[name] for name in to_run}, changed_files, pr
            )
            self._log_event("plan_created", {"commands": list(plan)})

        # ── 4. Execute in order ──
        prior_outputs: list[CommandOutput] = []
        for name in to_run:
            command = self.config.commands[name]
            try:
                output = self.executor.execute(
                    name, command, changed_files, pr, prior_outputs, plan.get(name)
                )
            except Exception as e:
                result.failed_commands.append(name)
                result.summaries.append(f"❌ {name}: Failed - {e}")
                logger.error(f"[RUN] Failed to execute command {name}: {e}")
                self._log_event("command_failed", {"command": name, "error": str(e)})
                continue

            if output is not None:
                prior_outputs.append(output)
                result.outputs.append(output)

            result.executed_commands.append(name)
            result.summaries.append(f"✅ {name}: {command.description}")
            logger.info(f"[RUN] Successfully executed command: {name}")
            self._log_event("command_executed", {"command": name, "has_output": output is not None})

        # ── 5. Verdict ──
        if not result.executed_commands:
            result.status = "failed"
        elif result.failed_commands:
            result.status = "partial"
        else:
            result.status = "success"

        self._emit(result)

        if result.status == "failed":
            self.outputs.set_failed("No commands were executed successfully")
        else:
            logger.info(
                f"[RUN] Successfully executed {len(result.executed_commands)} of {len(to_run)} commands"
            )

        return result

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    def _post_available_commands(self, pr: PullRequestInfo) -> None:
        commands = get_comment_enabled_commands(self.config)
        if not commands:
            return
        try:
            self.github.add_pull_request_comment(
                pr, available_commands_comment(commands, self.config.handle)
            )
            logger.info(f"[RUN] Posted available commands comment with {len(commands)} commands")
        except Exception as e:
            logger.warning(f"[RUN] Failed to post available commands comment: {e}")

    def _emit(self, result: RunResult) -> None:
        self.outputs.set_output("executed_commands", json.dumps(result.executed_commands))
        self.outputs.set_output("commands_summary", result.commands_summary)
        if result.summaries:
            self.outputs.write_step_summary(
                "### LLM Commands\n\n" + "\n".join(f"- {line}" for line in result.summaries)
            )

    def _log_event(self, event_type: str, data: dict | None = None) -> None:
        event = {
            "type": event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": data or {},
        }
        if self._result is not None:
            self._result.events.append(event)
        logger.debug(f"[EVENT] {event_type}: {data}")
