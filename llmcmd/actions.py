"""
GitHub Actions step plumbing: outputs, step summary, failure.
"""

from __future__ import annotations

import os
import uuid

from loguru import logger


class ActionOutputs:
    """
    Writes step outputs for later workflow steps.

    Values are kept in memory as well (last write wins) so the caller and
    tests can read back what was emitted.
    """

    def __init__(self, output_file: str | None = None, summary_file: str | None = None):
        self.output_file = output_file if output_file is not None else os.environ.get("GITHUB_OUTPUT")
        self.summary_file = summary_file if summary_file is not None else os.environ.get("GITHUB_STEP_SUMMARY")
        self.values: dict[str, str] = {}
        self.failed: str | None = None

    def set_output(self, name: str, value: str) -> None:
        self.values[name] = value

        if not self.output_file:
            logger.debug(f"[OUTPUT] {name}={value[:200]}")
            return

        with open(self.output_file, "a", encoding="utf-8") as f:
            if "\n" in value:
                delimiter = f"ghadelimiter_{uuid.uuid4().hex}"
                f.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
            else:
                f.write(f"{name}={value}\n")

    def write_step_summary(self, markdown: str) -> None:
        if not self.summary_file:
            return
        with open(self.summary_file, "a", encoding="utf-8") as f:
            f.write(f"{markdown}\n")

    def set_failed(self, message: str) -> None:
        """Mark the step failed. The CLI turns this into a non-zero exit code."""
        self.failed = message
        logger.error(message)
        if self.output_file or os.environ.get("GITHUB_ACTIONS"):
            # Workflow command: shows up as an annotation on the run
            escaped = message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
            print(f"::error::{escaped}", flush=True)
