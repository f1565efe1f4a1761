"""
🤖 Dispatch — The Command Runner

Takes one instruction of one command, with its target files, reference
files and earlier command outputs, and answers it as a PR comment plus
a one-line summary for downstream workflow steps.
"""

from __future__ import annotations

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from llmcmd.agents import BaseAgent, ModelResponseError, load_json_object
from llmcmd.models import (
    CommandOutput,
    CommandResult,
    PullRequestContext,
    ReferenceFile,
    TargetFile,
)
from llmcmd.router import RouterResponse


class CommandRequest(BaseModel):
    prompt: str
    target_files: list[TargetFile] = Field(default_factory=list)
    pull_request: PullRequestContext
    reference_files: list[ReferenceFile] = Field(default_factory=list)
    prior_outputs: list[CommandOutput] = Field(default_factory=list)


class CommandAgent(BaseAgent[CommandRequest, CommandResult]):
    role = "large"

    system_prompt = """You are Dispatch, an automated assistant that answers maintainer commands on pull requests.

You receive an instruction, the files it applies to (full content and, when
available, the diff), reference material, the pull request conversation and
the results of commands that already ran.

You MUST respond with a valid JSON object ONLY. No commentary outside it.

Output schema:
{
  "summary": "One or two plain sentences for workflow logs",
  "pull_request_comment": "The full answer in GitHub-flavoured markdown"
}

Rules:
- Follow the instruction. Do not review things it did not ask about.
- Cite files by path when you refer to them.
- Leave pull_request_comment empty when there is nothing worth posting.
"""

    def build_messages(self, request: CommandRequest) -> list[dict[str, str]]:
        pr = request.pull_request
        parts = [f"Instruction:\n{request.prompt}"]

        parts.append(
            f"Pull request: {pr.title}\n\n{pr.body or '(no description)'}"
        )
        if pr.comments:
            parts.append(
                "Conversation:\n" + "\n".join(f"- @{c.author}: {c.body}" for c in pr.comments)
            )

        if request.target_files:
            blocks = []
            for f in request.target_files:
                block = f"--- {f.filename} ---\n{f.content}"
                if f.patch:
                    block += f"\n--- diff: {f.filename} ---\n{f.patch}"
                blocks.append(block)
            parts.append("Target files:\n" + "\n\n".join(blocks))
        else:
            parts.append("Target files: none")

        if request.reference_files:
            parts.append(
                "Reference files:\n" + "\n\n".join(
                    f"--- {ref.name or ref.path} ({ref.path}) ---\n{ref.content}"
                    for ref in request.reference_files
                )
            )

        if request.prior_outputs:
            parts.append(
                "Earlier command results:\n" + "\n\n".join(
                    f"### {out.command}\nSummary: {out.summary}\n\n{out.pull_request_comment}"
                    for out in request.prior_outputs
                )
            )

        parts.append("Answer as JSON.")
        return [self._system_msg(), self._user_msg("\n\n".join(parts))]

    def parse_response(self, response: RouterResponse) -> CommandResult:
        raw = load_json_object(response.content)
        try:
            result = CommandResult.model_validate(raw)
        except ValidationError as e:
            logger.debug(f"[DISPATCH] Raw response: {response.content[:500]}")
            raise ModelResponseError(f"Command result does not match schema: {e}") from e

        logger.info(
            f"[DISPATCH] Result ready — comment={len(result.pull_request_comment)} chars, "
            f"{response.tokens_used} tokens"
        )
        return result
