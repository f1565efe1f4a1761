"""
LLMCMD GitHub Client

Everything the action needs from GitHub: the event that triggered the run,
the pull request, its changed files and comments, posting comments, and
reading reference files. Synchronous httpx with retries on transient errors.
"""

from __future__ import annotations

import base64
import json
import os
from pathlib import Path
from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, Field
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from llmcmd.models import ChangedFile, GitRef, PullRequestComment, PullRequestInfo

DEFAULT_API_URL = "https://api.github.com"
PER_PAGE = 100
MAX_PAGES = 30


class GitHubError(Exception):
    """Raised when a GitHub API call fails."""
    pass


# ---------------------------------------------------------------------------
# Event context
# ---------------------------------------------------------------------------

class GitHubContext(BaseModel):
    """The slice of the Actions environment the run depends on."""
    event_name: str = ""
    payload: dict[str, Any] = Field(default_factory=dict)
    owner: str = ""
    repo: str = ""
    api_url: str = DEFAULT_API_URL

    @classmethod
    def from_env(cls) -> "GitHubContext":
        payload: dict[str, Any] = {}
        event_path = os.environ.get("GITHUB_EVENT_PATH")
        if event_path and Path(event_path).exists():
            try:
                payload = json.loads(Path(event_path).read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"[GITHUB] Could not parse event payload {event_path}: {e}")

        owner, _, repo = os.environ.get("GITHUB_REPOSITORY", "").partition("/")
        return cls(
            event_name=os.environ.get("GITHUB_EVENT_NAME", ""),
            payload=payload,
            owner=owner,
            repo=repo,
            api_url=os.environ.get("GITHUB_API_URL", DEFAULT_API_URL),
        )

    @property
    def action(self) -> str:
        return str(self.payload.get("action") or "")

    @property
    def pr_number(self) -> int | None:
        if self.event_name == "pull_request":
            number = (self.payload.get("pull_request") or {}).get("number")
        elif self.event_name == "issue_comment":
            number = (self.payload.get("issue") or {}).get("number")
        else:
            number = None
        return int(number) if number else None

    @property
    def is_pull_request_comment(self) -> bool:
        return (
            self.event_name == "issue_comment"
            and bool((self.payload.get("issue") or {}).get("pull_request"))
        )

    @property
    def comment_body(self) -> str:
        return str((self.payload.get("comment") or {}).get("body") or "")


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

def _is_transient(error: BaseException) -> bool:
    if isinstance(error, httpx.TransportError):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code == 429 or error.response.status_code >= 500
    return False


_retry_transient = retry(
    retry=retry_if_exception(_is_transient),
    stop=stop_after_attempt(3),
    wait=wait_exponential(min=1, max=10),
    reraise=True,
)


class GitHubService:
    """
    GitHub REST client bound to the repository of the current run.

    Read helpers that only enrich context (PR info, changed files, comments)
    degrade to empty results with a logged warning. Writes raise GitHubError.
    """

    def __init__(
        self,
        token: str,
        context: GitHubContext,
        transport: httpx.BaseTransport | None = None,
    ):
        self.context = context
        self._client = httpx.Client(
            base_url=context.api_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "llmcmd",
            },
            timeout=30.0,
            transport=transport,
            follow_redirects=True,
        )
        # Unauthenticated client for arbitrary reference URLs
        self._web = httpx.Client(timeout=30.0, transport=transport, follow_redirects=True)

    @property
    def repo_path(self) -> str:
        return f"/repos/{self.context.owner}/{self.context.repo}"

    def close(self) -> None:
        self._client.close()
        self._web.close()

    # -- pull request -------------------------------------------------------

    def get_pull_request_info(self) -> PullRequestInfo | None:
        if self.context.event_name not in ("pull_request", "issue_comment"):
            return None

        number = self.context.pr_number
        if not number:
            return None

        try:
            pr = self._get_json(f"{self.repo_path}/pulls/{number}")
        except httpx.HTTPError as e:
            logger.warning(f"[GITHUB] Failed to get pull request info: {e}")
            return None

        return PullRequestInfo(
            number=pr["number"],
            title=pr.get("title") or "",
            body=pr.get("body") or "",
            author=(pr.get("user") or {}).get("login", ""),
            base=GitRef(ref=pr["base"]["ref"], sha=pr["base"]["sha"]),
            head=GitRef(ref=pr["head"]["ref"], sha=pr["head"]["sha"]),
        )

    def get_changed_files(self, pr: PullRequestInfo) -> list[ChangedFile]:
        try:
            listing = self._get_paginated(f"{self.repo_path}/pulls/{pr.number}/files")
        except httpx.HTTPError as e:
            logger.error(f"[GITHUB] Failed to get changed files: {e}")
            return []

        changed: list[ChangedFile] = []
        for item in listing:
            status = item.get("status", "modified")
            if status not in ("added", "modified", "removed", "renamed"):
                # copied / changed / unchanged are reported as plain modifications
                status = "modified"

            content = None
            if status != "removed":
                try:
                    content = self.get_file_content(
                        self.context.owner, self.context.repo, item["filename"], pr.head.sha
                    )
                except (httpx.HTTPError, GitHubError, ValueError) as e:
                    logger.warning(f"[GITHUB] Failed to get content for file {item['filename']}: {e}")

            changed.append(ChangedFile(
                filename=item["filename"],
                status=status,
                patch=item.get("patch"),
                content=content,
            ))

        return changed

    def get_pull_request_comments(self, pr: PullRequestInfo) -> list[PullRequestComment]:
        try:
            comments = self._get_paginated(f"{self.repo_path}/issues/{pr.number}/comments")
        except httpx.HTTPError as e:
            logger.warning(f"[GITHUB] Failed to get PR comments: {e}")
            return []

        return [
            PullRequestComment(
                author=(c.get("user") or {}).get("login", ""),
                body=c.get("body") or "",
            )
            for c in comments
        ]

    def add_pull_request_comment(
        self,
        pr: PullRequestInfo,
        body: str,
        command_name: str | None = None,
    ) -> None:
        try:
            self._request("POST", f"{self.repo_path}/issues/{pr.number}/comments", json={"body": body})
        except httpx.HTTPError as e:
            logger.error(f"[GITHUB] Failed to post comment to PR #{pr.number}: {e}")
            raise GitHubError(f"Failed to post comment to PR #{pr.number}: {e}") from e

        label = f" for {command_name}" if command_name else ""
        logger.info(f"[GITHUB] Posted comment{label} to PR #{pr.number}")

    # -- content ------------------------------------------------------------

    def get_file_content(self, owner: str, repo: str, path: str, ref: str | None = None) -> str:
        params = {"ref": ref} if ref else None
        data = self._get_json(f"/repos/{owner}/{repo}/contents/{path}", params=params)

        if not isinstance(data, dict) or data.get("type") != "file" or "content" not in data:
            raise GitHubError(f"{owner}/{repo}/{path} is not a regular file")
        if data.get("encoding") != "base64":
            # files over 1 MB come back without content
            raise GitHubError(f"{owner}/{repo}/{path} content not available (encoding={data.get('encoding')})")

        return base64.b64decode(data["content"]).decode("utf-8")

    @_retry_transient
    def fetch_url(self, url: str) -> str:
        response = self._web.get(url)
        response.raise_for_status()
        return response.text

    # -- transport ----------------------------------------------------------

    @_retry_transient
    def _request(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        logger.debug(f"[GITHUB] {method} {endpoint}")
        response = self._client.request(method, endpoint, **kwargs)
        response.raise_for_status()
        return response

    def _get_json(self, endpoint: str, params: dict | None = None) -> Any:
        return self._request("GET", endpoint, params=params).json()

    def _get_paginated(self, endpoint: str) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        for page in range(1, MAX_PAGES + 1):
            batch = self._get_json(endpoint, params={"per_page": PER_PAGE, "page": page})
            items.extend(batch)
            if len(batch) < PER_PAGE:
                break
        return items
