"""Subprocess execution for external command-line tools.

This module handles:
- Running registry and image tool commands with subprocess
- Capturing output for commands whose result is parsed
- Streaming output of long-running commands to stderr
- Converting failures into CommandError

Commands run without timeouts or retries; the tools' own defaults apply.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import sys
from collections.abc import Sequence

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Raised when an external command fails."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        stderr: str = "",
        code: str = "command_error",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr
        self.code = code


def run_command(
    cmd: Sequence[str],
    capture: bool = True,
    input_text: str | None = None,
) -> str:
    """Run an external command.

    Args:
        cmd: Command as list of strings.
        capture: Capture stdout and return it. When False, the command's
                 output is streamed to stderr.
        input_text: Optional text fed to the command's stdin.

    Returns:
        Captured stdout (empty string when not capturing).

    Raises:
        CommandError: If the command cannot be started or exits non-zero.
    """
    cmd_str = shlex.join(cmd)
    logger.debug("Executing: %s", cmd_str)

    try:
        if capture:
            result = subprocess.run(
                list(cmd),
                input=input_text,
                capture_output=True,
                text=True,
                check=False,
            )
        else:
            result = subprocess.run(
                list(cmd),
                input=input_text,
                stdout=sys.stderr,
                stderr=sys.stderr,
                text=True,
                check=False,
            )
    except OSError as e:
        raise CommandError(
            f"Failed to run {cmd[0]}: {e}",
            code="execution_error",
        ) from e

    if result.returncode != 0:
        stderr = (result.stderr or "").strip() if capture else ""
        message = f"Command failed with exit code {result.returncode}: {cmd_str}"
        if stderr:
            message = f"{message}: {stderr}"
        raise CommandError(message, exit_code=result.returncode, stderr=stderr)

    return result.stdout if capture else ""


__all__ = ["CommandError", "run_command"]
