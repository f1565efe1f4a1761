"""
LLMCMD Agent Roster

Each agent is:
  - A system prompt
  - A structured input (a pydantic request)
  - A constrained output schema

Agents are stateless between calls. State lives in the run controller.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from loguru import logger
from pydantic import BaseModel

from llmcmd.router import Router, RouterResponse, UsageCollector

RequestT = TypeVar("RequestT", bound=BaseModel)
ResultT = TypeVar("ResultT", bound=BaseModel)

JSON_MODE = {"type": "json_object"}


class ModelResponseError(Exception):
    """Raised when a model answer is not the JSON the agent asked for."""
    pass


def strip_code_fences(content: str) -> str:
    """Remove markdown fences some models wrap around JSON despite JSON mode."""
    content = content.strip()
    if content.startswith("```"):
        lines = content.split("\n")
        lines = [l for l in lines if not l.strip().startswith("```")]
        content = "\n".join(lines).strip()
    return content


def load_json_object(content: str) -> dict[str, Any]:
    try:
        data = json.loads(strip_code_fences(content))
    except json.JSONDecodeError as e:
        raise ModelResponseError(f"Model returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ModelResponseError(f"Model returned {type(data).__name__}, expected a JSON object")
    return data


class BaseAgent(ABC, Generic[RequestT, ResultT]):
    """
    Base class for LLMCMD agents.

    Subclasses define:
      - role: str — maps to a router client (`small` or `large`)
      - system_prompt: str — constraints + output schema
      - build_messages() — constructs the chat messages
      - parse_response() — extracts structured output
    """

    role: str = "large"
    system_prompt: str = "You are a helpful assistant."

    def __init__(self, router: Router):
        self.router = router

    def run(self, request: RequestT, collector: UsageCollector | None = None) -> ResultT:
        """Execute the agent: build messages → call model → parse."""
        messages = self.build_messages(request)
        response = self.router.complete(
            role=self.role,
            messages=messages,
            response_format=JSON_MODE,
            collector=collector,
        )
        logger.debug(f"[{self.role.upper()}] {response.model} answered in {response.latency_ms}ms")
        return self.parse_response(response)

    @abstractmethod
    def build_messages(self, request: RequestT) -> list[dict[str, str]]:
        """Build the message list for the LLM call."""
        ...

    @abstractmethod
    def parse_response(self, response: RouterResponse) -> ResultT:
        """Parse the LLM response into structured output."""
        ...

    def _system_msg(self) -> dict[str, str]:
        return {"role": "system", "content": self.system_prompt}

    def _user_msg(self, content: str) -> dict[str, str]:
        return {"role": "user", "content": content}
