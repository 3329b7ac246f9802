"""Shared type definitions for ci_image_cache.

This module contains dataclasses and enums shared across subpackages to
avoid circular imports.
"""

from dataclasses import dataclass
from enum import Enum

LATEST_TAG = "latest"


class BuildOutcome(str, Enum):
    """Result of a pull-or-build run."""

    CACHE_HIT = "cache_hit"
    BUILT = "built"


@dataclass(frozen=True)
class RepositoryInfo:
    """A registry repository as reported by the registry service.

    Attributes:
        name: Repository name.
        uri: Pull/push location (``<registry host>/<name>``).
        registry_id: Owning registry (account) identifier.
        arn: Unique resource identifier, used for tagging.
    """

    name: str
    uri: str
    registry_id: str
    arn: str

    @property
    def registry_host(self) -> str:
        """Registry host part of the repository URI."""
        return self.uri.split("/", 1)[0]


@dataclass(frozen=True)
class ImageReference:
    """A tagged reference into a repository location."""

    location: str
    tag: str

    def __str__(self) -> str:
        return f"{self.location}:{self.tag}"


@dataclass(frozen=True)
class BuildRequest:
    """Everything docker needs to build an image.

    Attributes:
        dockerfile: Path to the Dockerfile.
        context: Build context directory.
        target: Optional target stage.
        build_args: Build arguments as KEY or KEY=VALUE.
        additional_args: Extra arguments passed verbatim.
    """

    dockerfile: str
    context: str
    target: str | None = None
    build_args: tuple[str, ...] = ()
    additional_args: tuple[str, ...] = ()


@dataclass
class PipelineResult:
    """Result of a full pipeline step run."""

    repository: RepositoryInfo
    fingerprint: str
    image: ImageReference
    outcome: BuildOutcome
    policy_applied: bool = True


__all__ = [
    "LATEST_TAG",
    "BuildOutcome",
    "BuildRequest",
    "ImageReference",
    "PipelineResult",
    "RepositoryInfo",
]
