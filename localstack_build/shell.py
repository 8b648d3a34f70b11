"""Subprocess runner for opaque toolchain commands.

Toolchain steps (repo, make, gradle, patch, openssl, ...) are run as plain
subprocesses. Output goes straight to the inherited terminal unless the
caller asks to capture it.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from localstack_build.errors import CommandError, StageTimeoutError

logger = logging.getLogger(__name__)


class CommandRunner:
    """Runs commands with uniform error and timeout handling.

    Args:
        base_env: Environment variables added to every command.
        dry_run: Log commands without executing them.
    """

    def __init__(
        self,
        base_env: Mapping[str, str] | None = None,
        dry_run: bool = False,
    ) -> None:
        self.base_env = dict(base_env or {})
        self.dry_run = dry_run

    def run(
        self,
        args: Sequence[str],
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        input: str | None = None,
        capture: bool = False,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        """Execute a command.

        Args:
            args: Command and arguments.
            cwd: Working directory.
            env: Extra environment variables for this command.
            timeout: Wall-clock limit in seconds (None = no limit).
            input: Text fed to stdin.
            capture: Capture stdout/stderr instead of inheriting the terminal.
            check: Raise CommandError on non-zero exit.

        Returns:
            The completed process.

        Raises:
            CommandError: If the command cannot start or exits non-zero.
            StageTimeoutError: If the command exceeds ``timeout``.
        """
        cmd_str = shlex.join(args)
        logger.debug("Executing: %s (cwd=%s)", cmd_str, cwd)

        if self.dry_run:
            return subprocess.CompletedProcess(list(args), 0, "", "")

        merged: dict[str, str] | None = None
        if self.base_env or env:
            merged = dict(os.environ)
            merged.update(self.base_env)
            merged.update(env or {})

        try:
            result = subprocess.run(
                list(args),
                cwd=cwd,
                env=merged,
                timeout=timeout,
                input=input,
                capture_output=capture,
                text=True,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise StageTimeoutError(
                f"{cmd_str} timed out after {timeout} seconds", timeout=timeout
            ) from e
        except OSError as e:
            raise CommandError(
                f"Failed to execute {cmd_str}: {e}", code="execution_error"
            ) from e

        if check and result.returncode != 0:
            detail = f": {result.stderr.strip()}" if capture and result.stderr else ""
            raise CommandError(
                f"{cmd_str} exited with code {result.returncode}{detail}",
                exit_code=result.returncode,
            )
        return result

    def bash(
        self,
        script: str,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run a snippet under ``bash -e -c``; used where the toolchain needs
        sourced shell functions (envsetup.sh, choosecombo)."""
        return self.run(["bash", "-e", "-c", script], cwd=cwd, env=env, timeout=timeout)


__all__ = ["CommandRunner"]
