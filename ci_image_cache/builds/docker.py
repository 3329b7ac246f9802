"""Image builder client.

This module handles:
- Composing ``docker build`` commands from a BuildRequest
- Pulling, tagging and pushing image references
- Logging in to a registry with a password on stdin

Build and push output is streamed to stderr so it shows up in the job log.
"""

from __future__ import annotations

import logging
import shlex

from ci_image_cache.process import CommandError, run_command
from ci_image_cache.types import BuildRequest

logger = logging.getLogger(__name__)


class ImageCommandError(Exception):
    """Raised when an image command fails."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        code: str = "image_command_error",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.code = code


def split_additional_args(value: str) -> tuple[str, ...]:
    """Split an opaque argument string using shell quoting rules."""
    return tuple(shlex.split(value)) if value else ()


def compose_build_command(
    request: BuildRequest,
    tag: str,
    executable: str = "docker",
) -> list[str]:
    """Compose the ``docker build`` command for a request.

    Args:
        request: Build request.
        tag: Reference the built image is tagged with.
        executable: Name or path of the docker CLI.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    cmd = [executable, "build", "--file", request.dockerfile, "--tag", tag]

    if request.target:
        cmd.extend(["--target", request.target])

    for arg in request.build_args:
        cmd.extend(["--build-arg", arg])

    cmd.extend(request.additional_args)
    cmd.append(request.context)
    return cmd


class DockerClient:
    """Client for the docker command-line tool."""

    def __init__(self, executable: str = "docker") -> None:
        self.executable = executable

    def _run(self, operation: str, *args: str, input_text: str | None = None) -> None:
        try:
            run_command(
                [self.executable, operation, *args],
                capture=input_text is not None,
                input_text=input_text,
            )
        except CommandError as e:
            raise ImageCommandError(
                f"docker {operation} failed: {e}",
                exit_code=e.exit_code,
                code=f"{operation}_failed",
            ) from e

    def pull(self, ref: str) -> bool:
        """Pull an image reference.

        Returns:
            True if the image was pulled, False if the pull failed.
        """
        try:
            self._run("pull", ref)
        except ImageCommandError as e:
            logger.info("Pull of %s failed (exit code %s)", ref, e.exit_code)
            return False
        return True

    def build(self, request: BuildRequest, tag: str) -> None:
        """Build an image and tag it."""
        cmd = compose_build_command(request, tag, executable=self.executable)
        logger.info("Executing build: %s", shlex.join(cmd))
        self._run(*cmd[1:])

    def tag(self, source: str, target: str) -> None:
        """Add a local tag to an existing image."""
        self._run("tag", source, target)

    def push(self, ref: str) -> None:
        """Push an image reference."""
        self._run("push", ref)

    def login(self, registry: str, username: str, password: str) -> None:
        """Log in to a registry, passing the password on stdin."""
        self._run(
            "login",
            "--username",
            username,
            "--password-stdin",
            registry,
            input_text=password,
        )


__all__ = [
    "DockerClient",
    "ImageCommandError",
    "compose_build_command",
    "split_additional_args",
]
