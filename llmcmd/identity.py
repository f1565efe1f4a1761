"""Identity strings for LLMCMD."""

__version__ = "0.4.0"
__codename__ = "LLMCMD"
__tagline__ = "Ask the PR. Get an answer."

BANNER = r"""
  _   _    __  __  ___ __  __ ___
 | | | |  |  \/  |/ __|  \/  |   \
 | |_| |__| |\/| | (__| |\/| | |) |
 |___|____|_|  |_|\___|_|  |_|___/
"""
