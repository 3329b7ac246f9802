"""Registry service client.

Thin wrapper around the ``aws ecr`` command-line tool. Every call is a
blocking subprocess call; output is requested as JSON and parsed here so
the rest of the package deals with RepositoryInfo objects and exceptions.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from ci_image_cache.process import CommandError, run_command
from ci_image_cache.types import RepositoryInfo

logger = logging.getLogger(__name__)

NOT_FOUND_MARKER = "RepositoryNotFoundException"


class RegistryError(Exception):
    """Raised when a registry call fails."""

    def __init__(self, message: str, code: str = "registry_error") -> None:
        super().__init__(message)
        self.code = code


class RepositoryNotFoundError(RegistryError):
    """Raised when a repository does not exist."""

    def __init__(self, name: str, code: str = "repository_not_found") -> None:
        super().__init__(f"Repository not found: {name}", code=code)
        self.name = name


def _tag_list(tags: Mapping[str, str]) -> list[dict[str, str]]:
    return [{"Key": key, "Value": value} for key, value in tags.items()]


def _repository_from_json(data: dict[str, Any]) -> RepositoryInfo:
    return RepositoryInfo(
        name=data["repositoryName"],
        uri=data["repositoryUri"],
        registry_id=data["registryId"],
        arn=data["repositoryArn"],
    )


class RegistryClient:
    """Client for the registry service.

    Args:
        region: Optional region passed to every call.
        executable: Name or path of the aws CLI.
    """

    def __init__(self, region: str | None = None, executable: str = "aws") -> None:
        self.region = region
        self.executable = executable

    def _command(self, operation: str, *args: str) -> list[str]:
        cmd = [self.executable, "ecr", operation]
        if self.region:
            cmd.extend(["--region", self.region])
        cmd.extend(args)
        return cmd

    def _call(self, operation: str, *args: str) -> dict[str, Any]:
        cmd = self._command(operation, *args, "--output", "json")
        try:
            output = run_command(cmd)
        except CommandError as e:
            raise RegistryError(
                f"ecr {operation} failed: {e}",
                code=f"{operation}_failed",
            ) from e
        if not output.strip():
            return {}
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise RegistryError(
                f"ecr {operation} returned invalid JSON: {e}",
                code="invalid_response",
            ) from e

    def describe_repository(self, name: str) -> RepositoryInfo:
        """Look up a repository by name.

        Raises:
            RepositoryNotFoundError: If the repository does not exist.
            RegistryError: For any other failure.
        """
        cmd = self._command(
            "describe-repositories",
            "--repository-names",
            name,
            "--output",
            "json",
        )
        try:
            output = run_command(cmd)
        except CommandError as e:
            if NOT_FOUND_MARKER in e.stderr:
                raise RepositoryNotFoundError(name) from e
            raise RegistryError(
                f"ecr describe-repositories failed: {e}",
                code="describe_failed",
            ) from e

        try:
            repositories = json.loads(output)["repositories"]
        except (json.JSONDecodeError, KeyError) as e:
            raise RegistryError(
                f"ecr describe-repositories returned invalid JSON: {e}",
                code="invalid_response",
            ) from e
        if not repositories:
            raise RepositoryNotFoundError(name)
        return _repository_from_json(repositories[0])

    def create_repository(
        self, name: str, tags: Mapping[str, str] | None = None
    ) -> RepositoryInfo:
        """Create a repository, attaching tags at creation time."""
        args = ["--repository-name", name]
        if tags:
            args.extend(["--tags", json.dumps(_tag_list(tags))])
        data = self._call("create-repository", *args)
        return _repository_from_json(data["repository"])

    def tag_resource(self, arn: str, tags: Mapping[str, str]) -> None:
        """Add or update tags on a resource. Existing tags are kept."""
        self._call(
            "tag-resource",
            "--resource-arn",
            arn,
            "--tags",
            json.dumps(_tag_list(tags)),
        )

    def put_lifecycle_policy(self, name: str, policy: Mapping[str, Any]) -> None:
        """Install (overwrite) the lifecycle policy of a repository."""
        self._call(
            "put-lifecycle-policy",
            "--repository-name",
            name,
            "--lifecycle-policy-text",
            json.dumps(policy),
        )

    def get_login_password(self) -> str:
        """Return a short-lived password for registry login."""
        try:
            return run_command(self._command("get-login-password")).strip()
        except CommandError as e:
            raise RegistryError(
                f"ecr get-login-password failed: {e}",
                code="login_failed",
            ) from e


__all__ = [
    "NOT_FOUND_MARKER",
    "RegistryClient",
    "RegistryError",
    "RepositoryNotFoundError",
]
