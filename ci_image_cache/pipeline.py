"""Pipeline step entry point.

Wires the pieces together in the order the step runs them:

1. ensure the registry repository exists and is tagged
2. apply the expiration policy (best effort)
3. log in to the registry
4. compute the fingerprint
5. pull or build-and-push
6. export the image reference for later steps
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, MutableMapping
from pathlib import Path
from typing import TYPE_CHECKING

from ci_image_cache.builds.docker import DockerClient, split_additional_args
from ci_image_cache.builds.fingerprint import FingerprintInputs, compute_fingerprint
from ci_image_cache.builds.service import pull_or_build
from ci_image_cache.progress import banner
from ci_image_cache.registry.client import RegistryClient
from ci_image_cache.registry.service import (
    apply_expiration_policy,
    ensure_repository,
    login,
)
from ci_image_cache.types import BuildRequest, ImageReference, PipelineResult

if TYPE_CHECKING:
    from ci_image_cache.config import Settings

logger = logging.getLogger(__name__)


def build_request_from_settings(
    settings: Settings,
    base_dir: Path | None = None,
) -> BuildRequest:
    """Create the docker build request described by the settings.

    Relative Dockerfile and context paths are resolved against base_dir
    when given, matching what the fingerprint reads.
    """
    dockerfile = settings.dockerfile
    context = settings.build_context
    if base_dir is not None:
        dockerfile = str(base_dir / dockerfile)
        context = str(base_dir / context)
    return BuildRequest(
        dockerfile=dockerfile,
        context=context,
        target=settings.target,
        build_args=tuple(settings.build_args),
        additional_args=split_additional_args(settings.additional_build_args),
    )


def export_image_reference(
    name: str,
    image: ImageReference,
    env_file: Path | None = None,
    environ: MutableMapping[str, str] | None = None,
) -> None:
    """Expose the image reference to later pipeline steps.

    Args:
        name: Variable name.
        image: Image reference to export.
        env_file: Optional agent env file to append ``NAME=value`` to.
        environ: Environment to set the variable in (default: os.environ).
    """
    if environ is None:
        environ = os.environ
    environ[name] = str(image)
    if env_file is not None:
        with env_file.open("a") as f:
            f.write(f"{name}={image}\n")
    logger.info("Exported %s=%s", name, image)


def run_pipeline(
    settings: Settings,
    registry: RegistryClient | None = None,
    docker: DockerClient | None = None,
    environ: Mapping[str, str] | None = None,
    base_dir: Path | None = None,
) -> PipelineResult:
    """Run the cache step end to end.

    Args:
        settings: Resolved settings.
        registry: Registry client (default: one for settings.region).
        docker: Image builder client (default: docker on PATH).
        environ: Environment for bare build arguments (default: os.environ).
        base_dir: Directory relative paths are resolved against.

    Returns:
        PipelineResult describing what happened.

    Raises:
        RegistryError: If the repository cannot be looked up or created.
        FingerprintError: If a fingerprint input cannot be read.
        ImageCommandError: If pull-or-build fails after a miss.
    """
    if registry is None:
        registry = RegistryClient(region=settings.region)
    if docker is None:
        docker = DockerClient()

    repository = ensure_repository(
        registry, settings.repository_name, settings.ecr_tags
    )
    policy_applied = apply_expiration_policy(
        registry, settings.repository_name, settings.max_age_days
    )
    login(registry, docker, repository)

    fingerprint = compute_fingerprint(
        FingerprintInputs.from_settings(settings),
        environ=environ,
        base_dir=base_dir,
    )

    outcome = pull_or_build(
        docker,
        repository.uri,
        fingerprint,
        build_request_from_settings(settings, base_dir=base_dir),
    )

    image = ImageReference(repository.uri, fingerprint)
    banner(f"Using {image}", collapsed=True)
    export_image_reference(
        settings.export_env_variable,
        image,
        env_file=settings.buildkite_env_file,
    )

    return PipelineResult(
        repository=repository,
        fingerprint=fingerprint,
        image=image,
        outcome=outcome,
        policy_applied=policy_applied,
    )


__all__ = ["build_request_from_settings", "export_image_reference", "run_pipeline"]
