"""
LLMCMD File Matcher

Resolves an instruction's `applyTo` glob against either the PR's changed
files or the whole working tree, and returns the matching files with their
content (and diff, when the PR provides one).

Glob dialect:
  - `*` and `?` never cross a `/`
  - `**` as a full path segment spans any number of directories
  - `[abc]`, `[!abc]` character classes, `{a,b}` alternatives
  - "", ".", "**" and "**/*" all mean "every file"
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Iterable, Pattern

from loguru import logger

from llmcmd.models import ChangedFile, TargetFile

# ---------------------------------------------------------------------------
# Constants & Configuration
# ---------------------------------------------------------------------------

MAX_FILE_SIZE = 1024 * 1024

MATCH_ALL_PATTERNS = {"", ".", "**", "**/*"}

SKIP_DIRS = {
    ".git", ".hg", ".svn",
    "node_modules", "bower_components", ".venv", "venv", "__pycache__",
    "dist", "build",
}

SKIP_SUFFIXES = (".min.js", ".min.css", ".map")


# ---------------------------------------------------------------------------
# Pattern compilation
# ---------------------------------------------------------------------------

def _translate(pattern: str) -> str:
    """Translate one glob into a regex body (no anchors)."""
    out: list[str] = []
    i, n = 0, len(pattern)

    while i < n:
        c = pattern[i]

        if c == "*":
            j = i
            while j < n and pattern[j] == "*":
                j += 1
            at_segment_start = i == 0 or pattern[i - 1] == "/"
            if j - i >= 2 and at_segment_start:
                if j == n:
                    out.append(".*")
                    i = j
                    continue
                if pattern[j] == "/":
                    out.append("(?:[^/]*/)*")
                    i = j + 1
                    continue
            out.append("[^/]*")
            i = j

        elif c == "?":
            out.append("[^/]")
            i += 1

        elif c == "[":
            end = pattern.find("]", i + 2)
            if end == -1:
                out.append(re.escape(c))
                i += 1
                continue
            body = pattern[i + 1:end]
            if body.startswith("!"):
                body = "^" + body[1:]
            out.append(f"[{body.replace(chr(92), chr(92) * 2)}]")
            i = end + 1

        elif c == "{":
            end = pattern.find("}", i)
            options = pattern[i + 1:end].split(",") if end != -1 else []
            if len(options) < 2:
                out.append(re.escape(c))
                i += 1
                continue
            out.append("(?:" + "|".join(_translate(o) for o in options) + ")")
            i = end + 1

        else:
            out.append(re.escape(c))
            i += 1

    return "".join(out)


def compile_pattern(pattern: str) -> Pattern[str] | None:
    """Compile a glob. Returns None for the match-everything sentinels."""
    pattern = pattern.strip()
    while pattern.startswith("./"):
        pattern = pattern[2:]
    if pattern in MATCH_ALL_PATTERNS:
        return None
    return re.compile(rf"(?s:{_translate(pattern)})\Z")


def is_ignored(rel_path: str) -> bool:
    parts = rel_path.split("/")
    if any(part in SKIP_DIRS for part in parts[:-1]):
        return True
    return rel_path.endswith(SKIP_SUFFIXES)


# ---------------------------------------------------------------------------
# Matcher
# ---------------------------------------------------------------------------

class FileMatcher:
    """
    Selects target files for an instruction.

    `resolve(pattern)` walks the working tree.
    `resolve(pattern, changed_files)` only considers the PR's changed files,
    reusing content the GitHub client already fetched.
    """

    def __init__(self, working_dir: Path, max_file_size: int = MAX_FILE_SIZE):
        self.working_dir = working_dir.resolve()
        self.max_file_size = max_file_size

    def resolve(
        self,
        pattern: str,
        changed_files: list[ChangedFile] | None = None,
    ) -> list[TargetFile]:
        regex = compile_pattern(pattern)
        source = "modified" if changed_files is not None else "all"
        logger.info(f"[MATCH] Matching \"{pattern}\" against {source} files in {self.working_dir}")

        if changed_files is not None:
            files = self._from_changed(regex, changed_files)
        else:
            files = self._from_tree(regex)

        logger.info(f"[MATCH] Found {len(files)} {source} files matching \"{pattern}\"")
        return files

    # -- scopes ------------------------------------------------------------

    def _from_changed(self, regex: Pattern[str] | None, changed_files: list[ChangedFile]) -> list[TargetFile]:
        files: list[TargetFile] = []
        for changed in changed_files:
            rel_path = changed.filename
            if changed.status == "removed" or not self._is_candidate(rel_path, regex):
                continue

            if changed.content:
                size = len(changed.content.encode("utf-8"))
                if size > self.max_file_size:
                    logger.warning(f"[MATCH] Skipping large file: {rel_path} ({size} bytes)")
                    continue
                files.append(TargetFile(filename=rel_path, content=changed.content, patch=changed.patch))
                continue

            content = self._read_local(rel_path)
            if content is not None:
                files.append(TargetFile(filename=rel_path, content=content, patch=changed.patch))
        return files

    def _from_tree(self, regex: Pattern[str] | None) -> list[TargetFile]:
        files: list[TargetFile] = []
        for rel_path in self._walk():
            if not self._is_candidate(rel_path, regex):
                continue
            content = self._read_local(rel_path)
            if content is not None:
                files.append(TargetFile(filename=rel_path, content=content))
        return files

    # -- helpers -----------------------------------------------------------

    @staticmethod
    def _is_candidate(rel_path: str, regex: Pattern[str] | None) -> bool:
        if is_ignored(rel_path):
            return False
        return regex is None or regex.match(rel_path) is not None

    def _walk(self) -> Iterable[str]:
        """Yield repo-relative POSIX paths in a stable order, pruning skipped dirs."""
        for root, dirs, filenames in os.walk(self.working_dir):
            dirs[:] = sorted(d for d in dirs if d not in SKIP_DIRS)
            rel_root = Path(root).relative_to(self.working_dir)
            for name in sorted(filenames):
                yield (rel_root / name).as_posix()

    def _read_local(self, rel_path: str) -> str | None:
        full_path = self.working_dir / rel_path
        try:
            size = full_path.stat().st_size
            if size > self.max_file_size:
                logger.warning(f"[MATCH] Skipping large file: {rel_path} ({size} bytes)")
                return None
            return full_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"[MATCH] Failed to read file {rel_path}: {e}")
            return None
