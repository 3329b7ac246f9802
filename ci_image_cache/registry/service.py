"""Registry repository lifecycle.

This module provides the high-level registry API:
- ensure_repository(): look up or create the cache repository
- apply_expiration_policy(): install the age-based expiration rule
- login(): authenticate the image tool against the registry

All operations are idempotent and safe to run on every pipeline step.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from ci_image_cache.progress import banner
from ci_image_cache.registry.client import RegistryError, RepositoryNotFoundError
from ci_image_cache.types import RepositoryInfo

if TYPE_CHECKING:
    from ci_image_cache.builds.docker import DockerClient
    from ci_image_cache.registry.client import RegistryClient

logger = logging.getLogger(__name__)

LOGIN_USERNAME = "AWS"


def ensure_repository(
    client: RegistryClient,
    name: str,
    tags: Mapping[str, str] | None = None,
) -> RepositoryInfo:
    """Make sure the repository exists and carries the given tags.

    A missing repository is created with the tags attached. An existing one
    gets the tags merged in; tags already on it are never removed.

    Args:
        client: Registry client.
        name: Repository name.
        tags: Resource tags.

    Returns:
        RepositoryInfo of the existing or created repository.

    Raises:
        RegistryError: If the lookup fails for any reason other than the
            repository not existing, or if creation or tagging fails.
    """
    banner(f"Checking repository {name}", collapsed=True)
    try:
        repository = client.describe_repository(name)
    except RepositoryNotFoundError:
        banner(f"Creating repository {name}")
        repository = client.create_repository(name, tags)
        logger.info("Created repository %s", repository.uri)
        return repository

    if tags:
        logger.info("Tagging repository %s: %s", name, ", ".join(sorted(tags)))
        client.tag_resource(repository.arn, tags)

    return repository


def build_lifecycle_policy(max_age_days: int) -> dict[str, Any]:
    """Build the single-rule expiration policy document.

    The registry allows only one rule with an ``any`` tag status, so the
    policy always holds exactly this rule.

    Args:
        max_age_days: Days after push at which images expire.

    Returns:
        Lifecycle policy document.
    """
    return {
        "rules": [
            {
                "rulePriority": 1,
                "description": f"Expire images older than {max_age_days} days",
                "selection": {
                    "tagStatus": "any",
                    "countType": "sinceImagePushed",
                    "countUnit": "days",
                    "countNumber": max_age_days,
                },
                "action": {"type": "expire"},
            }
        ]
    }


def apply_expiration_policy(
    client: RegistryClient,
    name: str,
    max_age_days: int,
) -> bool:
    """Install the expiration policy, overwriting any existing one.

    Failures (typically missing permissions) are logged and ignored so
    restricted environments can still build and push.

    Args:
        client: Registry client.
        name: Repository name.
        max_age_days: Days after push at which images expire.

    Returns:
        True if the policy was applied, False if it failed.
    """
    banner(f"Applying {max_age_days} day expiration policy", collapsed=True)
    try:
        client.put_lifecycle_policy(name, build_lifecycle_policy(max_age_days))
    except RegistryError as e:
        logger.warning("Could not apply expiration policy to %s: %s", name, e)
        return False
    return True


def login(
    client: RegistryClient,
    docker: DockerClient,
    repository: RepositoryInfo,
) -> None:
    """Log the image tool in to the repository's registry."""
    banner(f"Logging in to {repository.registry_host}", collapsed=True)
    password = client.get_login_password()
    docker.login(repository.registry_host, LOGIN_USERNAME, password)


__all__ = [
    "LOGIN_USERNAME",
    "apply_expiration_policy",
    "build_lifecycle_policy",
    "ensure_repository",
    "login",
]
