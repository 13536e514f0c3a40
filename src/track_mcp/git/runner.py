"""Synchronous runner for the git CLI."""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .utils import sanitize_environment

logger = logging.getLogger(__name__)


class GitRunnerError(RuntimeError):
    """Base class for git runner errors."""


class GitNotFoundError(GitRunnerError):
    """Raised when the git executable cannot be located."""


@dataclass(slots=True)
class GitExecutionResult:
    """Holds the outcome of a git invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GitRunner:
    """Execute git commands and interpret the few answers track needs."""

    def __init__(self, executable: Path | None = None, *, timeout: float = 5.0) -> None:
        self._executable_path = self._resolve_executable(executable)
        self._timeout = timeout

    @staticmethod
    def _resolve_executable(explicit: Path | None) -> Path:
        if explicit is not None:
            candidate = Path(explicit)
            if candidate.exists() and candidate.is_file():
                return candidate
            raise GitNotFoundError(f"git executable not found at {candidate}")

        binary = shutil.which("git")
        if binary is None:
            raise GitNotFoundError("git executable not found on PATH")
        return Path(binary)

    @property
    def executable(self) -> Path:
        return self._executable_path

    def current_worktree(self, cwd: Path | None = None) -> str | None:
        """Return the name of the linked worktree containing ``cwd``.

        The main checkout and directories outside any repository yield
        ``None``. A linked worktree is recognised by its git dir differing from
        the common dir; its name is the basename of its top-level directory.
        """

        result = self._invoke(
            "rev-parse",
            "--path-format=absolute",
            "--git-dir",
            "--git-common-dir",
            "--show-toplevel",
            cwd=cwd,
        )
        if not result.ok:
            logger.debug("git rev-parse failed", extra={"stderr": result.stderr.strip()})
            return None
        lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if len(lines) < 3:
            return None
        git_dir, common_dir, toplevel = lines[:3]
        if Path(git_dir).resolve() == Path(common_dir).resolve():
            return None
        return Path(toplevel).name or None

    def _invoke(self, *args: str, cwd: Path | None = None) -> GitExecutionResult:
        cmd = [str(self._executable_path), *args]
        completed = subprocess.run(
            cmd,
            cwd=str(cwd) if cwd is not None else None,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            errors="replace",
            env=sanitize_environment(),
            timeout=self._timeout,
            check=False,
        )
        return GitExecutionResult(
            args=tuple(cmd),
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )


class FakeGitRunner(GitRunner):
    """Test double that replays canned git responses."""

    def __init__(self, responses: Iterable[GitExecutionResult] | None = None) -> None:  # type: ignore[override]
        self._responses = list(responses or [])
        self._invocations: list[tuple[str, ...]] = []
        self._executable_path = Path("/tmp/fake-git")
        self._timeout = 0.0

    def _invoke(self, *args: str, cwd: Path | None = None) -> GitExecutionResult:  # type: ignore[override]
        self._invocations.append(tuple(args))
        if self._responses:
            return self._responses.pop(0)
        return GitExecutionResult(args=tuple(args), returncode=128, stdout="", stderr="not a git repository")

    @property
    def invocations(self) -> list[tuple[str, ...]]:
        return self._invocations


def detect_worktree(
    executable: Path | None = None,
    *,
    cwd: Path | None = None,
    runner: GitRunner | None = None,
) -> str | None:
    """Best-effort lookup of the current worktree name; ``None`` when git is unavailable."""

    try:
        active = runner or GitRunner(executable)
        return active.current_worktree(cwd)
    except GitNotFoundError:
        logger.debug("git not available; skipping worktree detection")
        return None
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("git worktree detection failed", extra={"error": str(exc)})
        return None
