"""
Model backend facade.

The executor and the planner only ever see these two calls, so tests can
swap the whole model layer for a fake with the same method names.
"""

from __future__ import annotations

from llmcmd.agents.commander import CommandAgent, CommandRequest
from llmcmd.agents.planner import CommandForPlan, PlannerAgent, PlanRequest, PlanResult
from llmcmd.models import (
    CommandOutput,
    CommandResult,
    PullRequestContext,
    ReferenceFile,
    TargetFile,
)
from llmcmd.router import Router, UsageCollector


class ModelBackend:
    def __init__(self, router: Router):
        self.router = router
        self.planner = PlannerAgent(router)
        self.commander = CommandAgent(router)

    def plan(
        self,
        pull_request: PullRequestContext,
        commands: list[CommandForPlan],
        collector: UsageCollector | None = None,
    ) -> PlanResult:
        return self.planner.run(
            PlanRequest(pull_request=pull_request, commands=commands),
            collector=collector,
        )

    def execute_command(
        self,
        prompt: str,
        target_files: list[TargetFile],
        pull_request: PullRequestContext,
        reference_files: list[ReferenceFile],
        prior_outputs: list[CommandOutput],
        collector: UsageCollector | None = None,
    ) -> CommandResult:
        request = CommandRequest(
            prompt=prompt,
            target_files=target_files,
            pull_request=pull_request,
            reference_files=reference_files,
            prior_outputs=prior_outputs,
        )
        return self.commander.run(request, collector=collector)
