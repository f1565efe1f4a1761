"""
🧭 Scout — The Planner

Reads the PR and every command definition once, before anything runs,
and decides what extra context each command actually needs:
which files to load and which earlier command outputs to see.
Never writes comments. Only plans.
"""

from __future__ import annotations

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from llmcmd.agents import BaseAgent, ModelResponseError, load_json_object
from llmcmd.models import CommandPlan, PullRequestContext
from llmcmd.router import RouterResponse


# ---------------------------------------------------------------------------
# Request / Output Schemas
# ---------------------------------------------------------------------------

class InstructionForPlan(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    apply_to: str = Field(alias="applyTo")
    prompt: str
    files: list[dict[str, str | None]] = Field(default_factory=list)
    modified_only: bool = Field(alias="modifiedOnly")


class CommandForPlan(BaseModel):
    name: str
    description: str
    instructions: InstructionForPlan


class PlanRequest(BaseModel):
    pull_request: PullRequestContext
    commands: list[CommandForPlan]


class NamedCommandPlan(CommandPlan):
    name: str


class PlanResult(BaseModel):
    plans: list[NamedCommandPlan] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Agent Implementation
# ---------------------------------------------------------------------------

class PlannerAgent(BaseAgent[PlanRequest, PlanResult]):
    role = "small"

    system_prompt = """You are Scout, the planning pass of an automated pull request assistant.

Several commands are about to run against a pull request. Each command has a
description, a file pattern, a prompt and some reference files it always gets.
Your job is to decide, per command, what ADDITIONAL context it needs.

You MUST respond with a valid JSON object ONLY. No markdown, no commentary.

Output schema:
{
  "plans": [
    {
      "name": "<command name, exactly as given>",
      "loadFiles": [
        {"path": "path/in/repo", "reason": "Why the command needs it", "fullContent": true}
      ],
      "loadCommandOutputs": [
        {"commandName": "<earlier command>", "reason": "Why its output matters"}
      ]
    }
  ]
}

Rules:
- One entry per command. Use empty lists when nothing extra is needed.
- Only list paths that appear in the changed files or the reference files.
- Set fullContent to false when the diff of a changed file is enough.
- A command can only read outputs of commands listed BEFORE it.
- Keep context small. Every extra file costs tokens.
"""

    def build_messages(self, request: PlanRequest) -> list[dict[str, str]]:
        pr = request.pull_request

        comments = "\n".join(f"- @{c.author}: {c.body}" for c in pr.comments) or "- None"
        files = "\n".join(f"- {f.filename} ({f.status})" for f in pr.files) or "- None"

        command_blocks = []
        for position, command in enumerate(request.commands, start=1):
            instruction = command.instructions
            refs = ", ".join(
                f"{f.get('path')}" + (f" ({f['name']})" if f.get("name") else "")
                for f in instruction.files
            ) or "none"
            command_blocks.append(
                f"{position}. {command.name}: {command.description}\n"
                f"   applyTo: {instruction.apply_to} (modifiedOnly={instruction.modified_only})\n"
                f"   reference files: {refs}\n"
                f"   prompt: {instruction.prompt}"
            )

        user_content = f"""Pull request: {pr.title}

{pr.body or '(no description)'}

Comments:
{comments}

Changed files:
{files}

Commands, in execution order:
{chr(10).join(command_blocks)}

Produce the execution plan as JSON."""

        return [self._system_msg(), self._user_msg(user_content)]

    def parse_response(self, response: RouterResponse) -> PlanResult:
        raw = load_json_object(response.content)
        try:
            result = PlanResult.model_validate(raw)
        except ValidationError as e:
            logger.debug(f"[SCOUT] Raw response: {response.content[:500]}")
            raise ModelResponseError(f"Plan does not match schema: {e}") from e

        logger.info(f"[SCOUT] Plan ready — {len(result.plans)} commands planned")
        return result
