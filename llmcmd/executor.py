"""
LLMCMD Command Executor

Runs one configured command against a pull request, instruction by
instruction:

  scope → references (+ plan) → prior outputs → model → comment + outputs

It is deterministic glue. The model decides what to say; the executor
decides what the model gets to see and where the answer goes.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from loguru import logger

from llmcmd.actions import ActionOutputs
from llmcmd.config_loader import CommandDefinition, Instruction
from llmcmd.matcher import FileMatcher
from llmcmd.models import (
    ChangedFile,
    CommandOutput,
    CommandPlan,
    CommandResult,
    PullRequestContext,
    PullRequestInfo,
    TargetFile,
)
from llmcmd.references import ReferenceLoader
from llmcmd.router import UsageCollector


def comment_header(name: str, description: str) -> str:
    return f"## 🤖 {name}\n\n{description}\n\n"


def no_match_comment(name: str, description: str, pattern: str) -> str:
    return (
        comment_header(name, description)
        + f'No modified files match the pattern "{pattern}" in this pull request.'
    )


def failure_comment(name: str, description: str, error: BaseException) -> str:
    return (
        f"## ❌ {name} - Execution Failed\n\n"
        f"{description}\n\n"
        f"**Error:** {str(error) or type(error).__name__}\n\n"
        "Please check the action logs for more details."
    )


def debug_block(name: str, usage: UsageCollector) -> str:
    return (
        "\n\n<!-- llm-command-action:debug\n"
        f"Token Usage: {usage}\n"
        f"Command: {name}\n"
        f"Timestamp: {datetime.now(timezone.utc).isoformat()}\n"
        "-->"
    )


class CommandExecutor:
    """
    Executes commands one at a time.

    Collaborators:
      - github: PR comments (read fresh per model call) and comment posting
      - backend: `execute_command(...)` model call
      - matcher / references: target and reference file resolution
      - outputs: `<command>_summary` / `<command>_comment` step outputs
    """

    def __init__(
        self,
        github: Any,
        backend: Any,
        matcher: FileMatcher,
        references: ReferenceLoader,
        outputs: ActionOutputs,
        debug: bool = False,
    ):
        self.github = github
        self.backend = backend
        self.matcher = matcher
        self.references = references
        self.outputs = outputs
        self.debug = debug

    def execute(
        self,
        name: str,
        command: CommandDefinition,
        changed_files: list[ChangedFile],
        pr: PullRequestInfo,
        prior_outputs: list[CommandOutput] | None = None,
        plan: CommandPlan | None = None,
    ) -> CommandOutput | None:
        """
        Run every instruction of a command in order.

        Returns the combined output, or None when no instruction produced a
        result. A failing model call is reported on the PR and re-raised.
        """
        logger.info(f"[EXEC] Executing command: {name}")
        logger.info(f"[EXEC] Description: {command.description}")

        results: list[CommandResult] = []
        for instruction in command.instructions:
            result = self._execute_instruction(
                name, command, instruction, changed_files, pr, prior_outputs or [], plan
            )
            if result is not None:
                results.append(result)

        if not results:
            logger.info(f"[EXEC] Command {name} produced no result")
            return None

        output = CommandOutput(
            command=name,
            pull_request_comment="\n\n".join(
                r.pull_request_comment for r in results if r.pull_request_comment
            ).strip(),
            summary=" ".join(r.summary for r in results if r.summary).strip(),
        )

        if len(results) > 1:
            self._emit_outputs(name, output.summary, output.pull_request_comment)

        return output

    # -----------------------------------------------------------------------
    # One instruction
    # -----------------------------------------------------------------------

    def _execute_instruction(
        self,
        name: str,
        command: CommandDefinition,
        instruction: Instruction,
        changed_files: list[ChangedFile],
        pr: PullRequestInfo,
        prior_outputs: list[CommandOutput],
        plan: CommandPlan | None,
    ) -> CommandResult | None:
        # ── 1. Scope ──
        target_files: list[TargetFile] = []
        if instruction.targets_files:
            target_files = self.matcher.resolve(
                instruction.apply_to,
                changed_files if instruction.modified_only else None,
            )

            # ── 2. Empty match ──
            if not target_files:
                if instruction.modified_only:
                    self.github.add_pull_request_comment(
                        pr, no_match_comment(name, command.description, instruction.apply_to), name
                    )
                logger.info(f"[EXEC] No files match pattern \"{instruction.apply_to}\" for command {name}")
                return None

            logger.info(f"[EXEC] Found {len(target_files)} matching files for pattern \"{instruction.apply_to}\"")

        # ── 3. References ──
        reference_files = self.references.load(instruction.reference_files)
        if plan is not None and plan.load_files:
            reference_files = self.references.extend_from_plan(
                reference_files, plan.load_files, changed_files
            )

        # ── 4. Prior outputs ──
        relevant_outputs = prior_outputs
        if plan is not None and plan.load_command_outputs:
            wanted = {item.command_name for item in plan.load_command_outputs}
            relevant_outputs = [out for out in prior_outputs if out.command in wanted]
            logger.info(
                f"[EXEC] Including outputs from {len(relevant_outputs)} commands based on execution plan"
            )

        pull_request = PullRequestContext(
            title=pr.title,
            body=pr.body,
            comments=self.github.get_pull_request_comments(pr),
        )

        # ── 5. Model ──
        usage = UsageCollector(f"command:{name}")
        try:
            logger.info(f"[EXEC] Executing LLM function for command {name}")
            result = self.backend.execute_command(
                instruction.prompt,
                target_files,
                pull_request,
                reference_files,
                relevant_outputs,
                collector=usage,
            )
        except Exception as e:
            logger.error(f"[EXEC] Failed to execute command {name}: {e}")
            try:
                self.github.add_pull_request_comment(
                    pr, failure_comment(name, command.description, e), name
                )
            except Exception as post_error:
                logger.error(f"[EXEC] Could not report failure of {name} on the PR: {post_error}")
            raise

        logger.info(f"[EXEC] LLM usage for {name}: {usage}")

        # ── 6. Comment + outputs ──
        if result.pull_request_comment:
            body = comment_header(name, command.description) + result.pull_request_comment
            if self.debug:
                body += debug_block(name, usage)
            self.github.add_pull_request_comment(pr, body, name)
            logger.info(f"[EXEC] Posted comment for command {name}")

        self._emit_outputs(name, result.summary, result.pull_request_comment)
        return result

    def _emit_outputs(self, name: str, summary: str, comment: str) -> None:
        self.outputs.set_output(f"{name}_summary", summary)
        self.outputs.set_output(f"{name}_comment", comment)
