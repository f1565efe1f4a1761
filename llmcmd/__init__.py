"""
LLMCMD — config-driven LLM commands for pull requests.

Maintainers declare named commands in `.llm-commands.yaml`. A workflow run
(or a `/command` comment on a PR) selects the files each command targets,
sends them to a model together with the command's prompt, and posts the
answer back as a PR comment.
"""

from llmcmd.identity import __codename__, __tagline__, __version__

__all__ = ["__codename__", "__tagline__", "__version__"]
