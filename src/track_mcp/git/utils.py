"""Utility helpers for the git runner."""

from __future__ import annotations

import os
_SANITIZED_VARS = {
    "GIT_PAGER",
    "GIT_TRACE",
    "GIT_TRACE_PERFORMANCE",
    "GIT_TRACE_SETUP",
    "PAGER",
}

_FIXED_VARS = {
    "GIT_TERMINAL_PROMPT": "0",
    "LC_ALL": "C",
}


def sanitize_environment() -> dict[str, str]:
    """Return an environment that keeps git output stable and non-interactive."""

    env = dict(os.environ)
    for key in _SANITIZED_VARS:
        env.pop(key, None)
    env.update(_FIXED_VARS)
    return env
