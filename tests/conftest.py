from __future__ import annotations

from pathlib import Path

import pytest

from llmcmd.actions import ActionOutputs
from llmcmd.agents.planner import NamedCommandPlan, PlanResult
from llmcmd.config_loader import CommandDefinition, CommandsConfig
from llmcmd.models import (
    ChangedFile,
    CommandResult,
    PullRequestComment,
    PullRequestInfo,
)


class FakeGitHub:
    """Records every call the core makes against the GitHub collaborator."""

    def __init__(self, pr: PullRequestInfo | None = None, changed_files=None, comments=None, refs=None):
        self.pr = pr
        self.changed_files = changed_files or []
        self.comments = comments or [PullRequestComment(author="alice", body="please check")]
        self.refs = refs or {}
        self.posted: list[tuple[str, str | None]] = []
        self.fetched: list[str] = []
        self.fail_posting = False

    def get_pull_request_info(self):
        return self.pr

    def get_changed_files(self, pr):
        return list(self.changed_files)

    def get_pull_request_comments(self, pr):
        return list(self.comments)

    def add_pull_request_comment(self, pr, body, command_name=None):
        if self.fail_posting:
            raise RuntimeError("comment API down")
        self.posted.append((body, command_name))

    def get_file_content(self, owner, repo, path, ref=None):
        key = f"https://github.com/{owner}/{repo}/blob/{ref}/{path}"
        self.fetched.append(key)
        if key not in self.refs:
            raise RuntimeError("404 Not Found")
        return self.refs[key]

    def fetch_url(self, url):
        self.fetched.append(url)
        if url not in self.refs:
            raise RuntimeError("connection refused")
        return self.refs[url]


class FakeBackend:
    """Model backend double. `results` maps prompt → CommandResult or exception."""

    def __init__(self, results=None, plans=None, plan_error: Exception | None = None):
        self.results = results or {}
        self.plans = plans or []
        self.plan_error = plan_error
        self.plan_calls: list[tuple] = []
        self.calls: list[dict] = []

    def plan(self, pull_request, commands, collector=None):
        self.plan_calls.append((pull_request, commands))
        if self.plan_error:
            raise self.plan_error
        return PlanResult(plans=[NamedCommandPlan.model_validate(p) for p in self.plans])

    def execute_command(self, prompt, target_files, pull_request, reference_files, prior_outputs, collector=None):
        self.calls.append({
            "prompt": prompt,
            "target_files": list(target_files),
            "pull_request": pull_request,
            "reference_files": list(reference_files),
            "prior_outputs": list(prior_outputs),
        })
        outcome = self.results.get(prompt, CommandResult(summary=f"done: {prompt}", pull_request_comment=f"answer to {prompt}"))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def pr() -> PullRequestInfo:
    return PullRequestInfo(number=7, title="Add parser", body="Adds a parser", author="bob")


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    (tmp_path / "a.py").write_text("x")
    (tmp_path / "b.js").write_text("console.log(1)")
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "lib.py").write_text("def f():\n    return 1\n")
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "readme.md").write_text("# Readme")
    (tmp_path / "node_modules" / "pkg").mkdir(parents=True)
    (tmp_path / "node_modules" / "pkg" / "index.py").write_text("ignored")
    (tmp_path / "app.min.js").write_text("minified")
    return tmp_path


@pytest.fixture
def changed_files() -> list[ChangedFile]:
    return [
        ChangedFile(filename="a.py", status="modified", content="x", patch="@@ -0,0 +1 @@\n+x"),
        ChangedFile(filename="b.js", status="modified"),
    ]


@pytest.fixture
def outputs(tmp_path: Path) -> ActionOutputs:
    return ActionOutputs(output_file=str(tmp_path / "gh_output"), summary_file=str(tmp_path / "gh_summary"))


def make_config(commands: dict, **extra) -> CommandsConfig:
    return CommandsConfig.model_validate({"commands": commands, **extra})


def command(prompt: str, apply_to: str = "none", modified_only: bool = True, files=None, **extra) -> dict:
    return {
        "description": extra.pop("description", f"{prompt} command"),
        "instructions": [{
            "applyTo": apply_to,
            "prompt": prompt,
            "files": files or [],
            "modifiedOnly": modified_only,
        }],
        **extra,
    }


def definition(prompt: str, **kwargs) -> CommandDefinition:
    return CommandDefinition.model_validate(command(prompt, **kwargs))
