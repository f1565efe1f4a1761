"""
LLMCMD Execution Planner

One cheap model call before any command runs. The resulting plan narrows
each command's context (extra files, earlier outputs). It is a hint only:
when planning fails the run carries on with the statically declared
reference files.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from llmcmd.agents.planner import CommandForPlan, InstructionForPlan
from llmcmd.config_loader import CommandDefinition
from llmcmd.models import (
    ChangedFile,
    CommandPlan,
    ExecutionPlan,
    FileSummary,
    PullRequestContext,
    PullRequestInfo,
)
from llmcmd.router import UsageCollector


def commands_for_plan(commands: dict[str, CommandDefinition]) -> list[CommandForPlan]:
    """Describe each command by its first instruction; later instructions are not planned for."""
    described = []
    for name, command in commands.items():
        first = command.instructions[0]
        described.append(CommandForPlan(
            name=name,
            description=command.description,
            instructions=InstructionForPlan(
                apply_to=first.apply_to,
                prompt=first.prompt,
                files=[{"name": ref.name, "path": ref.path} for ref in first.reference_files],
                modified_only=first.modified_only,
            ),
        ))
    return described


class ExecutionPlanner:
    """
    `backend` needs `plan(pull_request, commands, collector=...)`;
    `github` needs `get_pull_request_comments(pr)`.
    """

    def __init__(self, backend: Any, github: Any):
        self.backend = backend
        self.github = github

    def plan(
        self,
        commands: dict[str, CommandDefinition],
        changed_files: list[ChangedFile],
        pr: PullRequestInfo,
    ) -> ExecutionPlan:
        logger.info("[PLAN] Planning command execution...")

        try:
            pull_request = PullRequestContext(
                title=pr.title,
                body=pr.body,
                comments=self.github.get_pull_request_comments(pr),
                files=[FileSummary(filename=f.filename, status=f.status) for f in changed_files],
            )

            collector = UsageCollector("planning")
            result = self.backend.plan(pull_request, commands_for_plan(commands), collector=collector)
            logger.info(f"[PLAN] Planning usage: {collector}")

            plan: ExecutionPlan = {
                entry.name: CommandPlan(
                    load_files=entry.load_files,
                    load_command_outputs=entry.load_command_outputs,
                )
                for entry in result.plans
            }
        except Exception as e:
            logger.warning(f"[PLAN] Planning failed, falling back to default execution: {e}")
            return {}

        logger.info(f"[PLAN] Generated execution plan for {len(plan)} commands")
        return plan
