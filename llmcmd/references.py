"""
LLMCMD Reference Loader

Reference files are supplementary material attached to an instruction:
style guides, API docs, examples. A reference `path` may be
  - a GitHub blob URL (https://github.com/<owner>/<repo>/blob/<ref>/<path>),
    fetched through the contents API so private repos work,
  - any other http(s) URL, fetched as-is,
  - a path relative to the working directory.

Missing references never fail an instruction; they load as empty content.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from loguru import logger

from llmcmd.config_loader import FileReference
from llmcmd.models import ChangedFile, PlannedFile, ReferenceFile


class ReferenceKind(str, Enum):
    GITHUB = "github"
    URL = "url"
    LOCAL = "local"


@dataclass(frozen=True)
class GitHubBlob:
    owner: str
    repo: str
    ref: str
    path: str


def parse_github_blob_url(url: str) -> GitHubBlob | None:
    try:
        parsed = urlparse(url)
    except ValueError:
        return None

    if parsed.scheme not in ("http", "https") or parsed.hostname != "github.com":
        return None

    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) < 5 or parts[2] != "blob":
        return None

    return GitHubBlob(owner=parts[0], repo=parts[1], ref=parts[3], path="/".join(parts[4:]))


def classify_reference(path: str) -> ReferenceKind:
    if path.startswith(("http://", "https://")):
        if parse_github_blob_url(path):
            return ReferenceKind.GITHUB
        return ReferenceKind.URL
    return ReferenceKind.LOCAL


class ReferenceLoader:
    """
    Resolves reference pointers to content.

    `github` is anything with `get_file_content(owner, repo, path, ref)` and
    `fetch_url(url)`; both may raise, `fetch()` absorbs that.
    """

    def __init__(self, github: Any, working_dir: Path):
        self.github = github
        self.working_dir = working_dir.resolve()

    def fetch(self, path: str) -> str:
        """Content for one reference path, or "" when it cannot be read. Never raises."""
        logger.info(f"[REFS] Fetching reference file from: {path}")
        kind = classify_reference(path)
        try:
            if kind is ReferenceKind.GITHUB:
                blob = parse_github_blob_url(path)
                return self.github.get_file_content(blob.owner, blob.repo, blob.path, blob.ref)
            if kind is ReferenceKind.URL:
                return self.github.fetch_url(path)
            return self._read_local(path)
        except Exception as e:
            logger.warning(f"[REFS] Failed to fetch {kind.value} reference {path}: {e}")
            return ""

    def load(self, references: list[FileReference]) -> list[ReferenceFile]:
        """Load declared references in order. Unreadable ones carry empty content."""
        return [
            ReferenceFile(name=ref.name, path=ref.path, content=self.fetch(ref.path))
            for ref in references
        ]

    def extend_from_plan(
        self,
        reference_files: list[ReferenceFile],
        planned: list[PlannedFile],
        changed_files: list[ChangedFile],
    ) -> list[ReferenceFile]:
        """
        Append planner-directed files that are not loaded yet (first path wins).

        For changed files marked `fullContent: false`, the diff stands in for
        the content when the PR has one. A planned file that cannot be read
        is dropped.
        """
        merged = list(reference_files)
        seen = {ref.path for ref in merged}
        changed_by_name = {f.filename: f for f in changed_files}

        logger.info(f"[REFS] Processing {len(planned)} files from execution plan")
        for item in planned:
            if item.path in seen:
                logger.info(f"[REFS] Skipping duplicate file: {item.path}")
                continue

            changed = changed_by_name.get(item.path)
            if changed is not None and not item.full_content and changed.patch:
                content = changed.patch
            elif changed is not None and changed.content:
                content = changed.content
            else:
                content = self.fetch(item.path)

            if not content:
                logger.warning(f"[REFS] Failed to load planned file {item.path}, dropping it")
                continue

            merged.append(ReferenceFile(name=item.reason or None, path=item.path, content=content))
            seen.add(item.path)
            logger.info(f"[REFS] Loaded additional file: {item.path} ({item.reason})")

        return merged

    def _read_local(self, path: str) -> str:
        local = self.working_dir / path
        if not local.is_file():
            logger.warning(f"[REFS] Reference file not found: {path}")
            return ""
        return local.read_text(encoding="utf-8")
