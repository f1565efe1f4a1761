import pytest

from llmcmd.agents import ModelResponseError, load_json_object, strip_code_fences
from llmcmd.agents.commander import CommandAgent, CommandRequest
from llmcmd.agents.planner import CommandForPlan, InstructionForPlan, PlannerAgent, PlanRequest
from llmcmd.models import (
    CommandOutput,
    PullRequestComment,
    PullRequestContext,
    ReferenceFile,
    TargetFile,
)
from llmcmd.router import RouterResponse


class StubRouter:
    def __init__(self, content):
        self.content = content
        self.calls = []

    def complete(self, role, messages, response_format=None, collector=None):
        self.calls.append({"role": role, "messages": messages, "response_format": response_format})
        return RouterResponse(content=self.content, model="stub/model")


PR = PullRequestContext(
    title="Add parser",
    body="Adds a parser",
    comments=[PullRequestComment(author="alice", body="/review")],
)


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('  {"a": 1} ') == '{"a": 1}'


def test_load_json_object_rejects_non_objects():
    with pytest.raises(ModelResponseError, match="invalid JSON"):
        load_json_object("sure, here you go")
    with pytest.raises(ModelResponseError, match="expected a JSON object"):
        load_json_object("[1, 2]")


def test_command_agent_builds_context_and_parses():
    router = StubRouter('```json\n{"summary": "2 issues", "pull_request_comment": "- fix a.py"}\n```')
    request = CommandRequest(
        prompt="Review for bugs",
        target_files=[TargetFile(filename="a.py", content="x = 1", patch="+x = 1")],
        pull_request=PR,
        reference_files=[ReferenceFile(name="Style", path="docs/style.md", content="be nice")],
        prior_outputs=[CommandOutput(command="lint", summary="clean")],
    )

    result = CommandAgent(router).run(request)

    assert result.summary == "2 issues"
    assert result.pull_request_comment == "- fix a.py"
    call = router.calls[0]
    assert call["role"] == "large"
    assert call["response_format"] == {"type": "json_object"}
    user = call["messages"][1]["content"]
    assert "Review for bugs" in user
    assert "--- a.py ---\nx = 1" in user
    assert "+x = 1" in user
    assert "--- Style (docs/style.md) ---" in user
    assert "### lint" in user
    assert "@alice: /review" in user


def test_command_agent_rejects_wrong_shape():
    router = StubRouter('{"summary": ["not", "a", "string"]}')
    with pytest.raises(ModelResponseError):
        CommandAgent(router).run(CommandRequest(prompt="x", pull_request=PR))


def test_planner_agent_uses_small_client():
    router = StubRouter(
        '{"plans": [{"name": "review", "loadFiles": [{"path": "a.py", "reason": "r", "fullContent": false}],'
        ' "loadCommandOutputs": []}]}'
    )
    request = PlanRequest(pull_request=PR, commands=[
        CommandForPlan(
            name="review",
            description="Review",
            instructions=InstructionForPlan(apply_to="**/*.py", prompt="Review", modified_only=True),
        ),
    ])

    result = PlannerAgent(router).run(request)

    assert router.calls[0]["role"] == "small"
    assert result.plans[0].name == "review"
    assert result.plans[0].load_files[0].full_content is False
    assert "1. review: Review" in router.calls[0]["messages"][1]["content"]


def test_planner_agent_rejects_bad_plan():
    router = StubRouter('{"plans": [{"loadFiles": []}]}')
    request = PlanRequest(pull_request=PR, commands=[])
    with pytest.raises(ModelResponseError, match="Plan does not match schema"):
        PlannerAgent(router).run(request)
