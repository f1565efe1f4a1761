"""
Run-scoped records shared between the GitHub client, the matcher,
the planner and the executor. Everything here is created fresh per run.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

FileStatus = Literal["added", "modified", "removed", "renamed"]


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Pull request snapshot
# ---------------------------------------------------------------------------

class GitRef(_Record):
    ref: str = ""
    sha: str = ""


class PullRequestInfo(_Record):
    number: int
    title: str = ""
    body: str = ""
    author: str = ""
    base: GitRef = Field(default_factory=GitRef)
    head: GitRef = Field(default_factory=GitRef)


class PullRequestComment(_Record):
    author: str = ""
    body: str = ""


class ChangedFile(_Record):
    filename: str
    status: FileStatus = "modified"
    patch: str | None = None
    content: str | None = None

    @model_validator(mode="after")
    def _removed_has_no_content(self) -> "ChangedFile":
        if self.status == "removed":
            self.content = None
        return self


class FileSummary(_Record):
    filename: str
    status: str


class PullRequestContext(_Record):
    """What the model sees of the PR. `files` is only filled in for planning."""
    title: str = ""
    body: str = ""
    comments: list[PullRequestComment] = Field(default_factory=list)
    files: list[FileSummary] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Per-instruction inputs
# ---------------------------------------------------------------------------

class TargetFile(_Record):
    model_config = ConfigDict(frozen=True)

    filename: str
    content: str
    patch: str | None = None


class ReferenceFile(_Record):
    name: str | None = None
    path: str
    content: str = ""


# ---------------------------------------------------------------------------
# Execution plan
# ---------------------------------------------------------------------------

class PlannedFile(_Record):
    path: str
    reason: str = ""
    full_content: bool = Field(default=True, alias="fullContent")


class PlannedCommandOutput(_Record):
    command_name: str = Field(alias="commandName")
    reason: str = ""


class CommandPlan(_Record):
    load_files: list[PlannedFile] = Field(default_factory=list, alias="loadFiles")
    load_command_outputs: list[PlannedCommandOutput] = Field(
        default_factory=list, alias="loadCommandOutputs"
    )


ExecutionPlan = dict[str, CommandPlan]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class CommandResult(_Record):
    """Structured answer for one instruction."""
    summary: str = ""
    pull_request_comment: str = ""


class CommandOutput(_Record):
    """A finished command, as later commands see it."""
    command: str
    pull_request_comment: str = ""
    summary: str = ""
