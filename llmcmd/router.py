"""
LLMCMD Router — Vendor-Agnostic Model Abstraction

Routes agent calls through LiteLLM so agents never know which vendor is
backing them. Two client roles exist: `small` (planning) and `large`
(command execution). Handles usage accounting, retries and structured
logging.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

import litellm
from loguru import logger
from pydantic import BaseModel
from tenacity import retry, stop_after_attempt, wait_exponential

from llmcmd.config_loader import LLMClientConfig, LLMClientsConfig

# Provider identifiers used in .llm-commands.yaml → LiteLLM model prefixes
PROVIDER_PREFIXES = {
    "openai": "openai",
    "openai-generic": "openai",
    "anthropic": "anthropic",
    "google-ai": "gemini",
    "gemini": "gemini",
    "vertex-ai": "vertex_ai",
    "aws-bedrock": "bedrock",
    "azure-openai": "azure",
    "ollama": "ollama",
}

_FORWARDED_OPTIONS = ("temperature", "max_tokens", "api_version")


# ---------------------------------------------------------------------------
# Usage Tracking
# ---------------------------------------------------------------------------

@dataclass
class UsageRecord:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    estimated_cost: float = 0.0
    call_count: int = 0


@dataclass
class UsageCollector:
    """Token + dollar accounting for one model call (or a whole run)."""
    name: str
    usage: UsageRecord = field(default_factory=UsageRecord)

    def record(self, response: Any) -> None:
        """Record usage from a LiteLLM response.

        Cost comes from LiteLLM's cost calculator, which does not know every
        model; unknown models simply contribute no cost.
        """
        usage = getattr(response, "usage", None)
        if usage:
            self.usage.prompt_tokens += getattr(usage, "prompt_tokens", 0) or 0
            self.usage.completion_tokens += getattr(usage, "completion_tokens", 0) or 0
            self.usage.total_tokens += getattr(usage, "total_tokens", 0) or 0

        try:
            self.usage.estimated_cost += litellm.completion_cost(completion_response=response) or 0.0
        except Exception as e:
            logger.debug(f"[ROUTER] No cost data for {self.name}: {e}")

        self.usage.call_count += 1

    def merge(self, other: "UsageCollector") -> None:
        self.usage.prompt_tokens += other.usage.prompt_tokens
        self.usage.completion_tokens += other.usage.completion_tokens
        self.usage.total_tokens += other.usage.total_tokens
        self.usage.estimated_cost += other.usage.estimated_cost
        self.usage.call_count += other.usage.call_count

    def summary(self) -> dict:
        return {
            "prompt_tokens": self.usage.prompt_tokens,
            "completion_tokens": self.usage.completion_tokens,
            "total_tokens": self.usage.total_tokens,
            "estimated_cost": round(self.usage.estimated_cost, 4),
            "call_count": self.usage.call_count,
        }

    def __str__(self) -> str:
        return (
            f"in={self.usage.prompt_tokens} out={self.usage.completion_tokens} "
            f"total={self.usage.total_tokens} cost=${self.usage.estimated_cost:.4f}"
        )


# ---------------------------------------------------------------------------
# Client → LiteLLM kwargs
# ---------------------------------------------------------------------------

def _model_name(client: LLMClientConfig) -> str:
    model = str(client.options.get("model", "")).strip()
    if not model:
        raise ValueError(f"LLM client for provider '{client.provider}' has no model option")

    prefix = PROVIDER_PREFIXES.get(client.provider, client.provider)
    if model.startswith(f"{prefix}/"):
        return model
    return f"{prefix}/{model}"


def _build_kwargs(
    client: LLMClientConfig,
    messages: list[dict[str, str]],
    response_format: dict | None,
) -> dict[str, Any]:
    """
    Build LiteLLM kwargs from a configured client.
    `api_key` goes through env indirection at call time, never at load time.
    """
    options = client.resolved_options()
    kwargs: dict[str, Any] = {
        "model": _model_name(client),
        "messages": messages,
    }

    if options.get("api_key"):
        kwargs["api_key"] = options["api_key"]
    if options.get("base_url"):
        kwargs["api_base"] = options["base_url"]

    for key in _FORWARDED_OPTIONS:
        if key in options:
            kwargs[key] = options[key]

    ignored = set(options) - {"model", "api_key", "base_url", *_FORWARDED_OPTIONS}
    if ignored:
        logger.debug(f"[ROUTER] Ignoring client options: {sorted(ignored)}")

    if response_format:
        kwargs["response_format"] = response_format

    return kwargs


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------

class RouterResponse(BaseModel):
    content: str
    model: str
    tokens_used: int = 0
    cost: float = 0.0
    latency_ms: int = 0


class Router:
    """
    Vendor-agnostic model router.

    Agents call `router.complete(role, messages)`.
    The router resolves the client, records usage and returns structured output.
    """

    def __init__(self, clients: LLMClientsConfig):
        self.clients = clients
        self.total = UsageCollector("run")
        self._role_client_map = {
            "small": clients.small,
            "large": clients.large,
        }

        litellm.suppress_debug_info = True

    def resolve_client(self, role: str) -> LLMClientConfig:
        client = self._role_client_map.get(role)
        if client is None:
            raise ValueError(f"Unknown client role: {role}. Known: {list(self._role_client_map)}")
        return client

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(min=1, max=10), reraise=True)
    def complete(
        self,
        role: str,
        messages: list[dict[str, str]],
        response_format: dict | None = None,
        collector: UsageCollector | None = None,
    ) -> RouterResponse:
        """Send a completion request through LiteLLM.

        Args:
            role: Client role, `small` or `large`.
            messages: Standard chat messages [{"role": ..., "content": ...}].
            response_format: Optional response format, e.g. JSON mode.
            collector: Per-call usage handle; the run-wide total is always updated.

        Returns:
            RouterResponse with the content, model used, tokens, cost and latency.
        """
        client = self.resolve_client(role)
        kwargs = _build_kwargs(client, messages, response_format)
        model = kwargs["model"]
        start = time.monotonic()

        logger.debug(f"[ROUTER] {role} → {model} ({len(messages)} messages)")

        response = litellm.completion(**kwargs)
        elapsed_ms = int((time.monotonic() - start) * 1000)

        call = UsageCollector(f"{role}:{model}")
        call.record(response)
        self.total.merge(call)
        if collector is not None:
            collector.merge(call)

        content = response.choices[0].message.content or ""

        logger.debug(f"[ROUTER] {role} complete — {call}, {elapsed_ms}ms")

        return RouterResponse(
            content=content,
            model=model,
            tokens_used=call.usage.total_tokens,
            cost=call.usage.estimated_cost,
            latency_ms=elapsed_ms,
        )
