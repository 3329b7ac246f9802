"""Build service module.

This module provides the cache-aware build API:
- pull_or_build(): reuse the image tagged with the fingerprint if the
  registry has it, otherwise build it and publish it under the fingerprint
  and the floating latest tag

There is no locking across pipeline runs. Two runs missing the cache at the
same time both build and push; the last push of each tag wins.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ci_image_cache.progress import banner
from ci_image_cache.types import LATEST_TAG, BuildOutcome, ImageReference

if TYPE_CHECKING:
    from ci_image_cache.builds.docker import DockerClient
    from ci_image_cache.types import BuildRequest

logger = logging.getLogger(__name__)


def pull_or_build(
    docker: DockerClient,
    location: str,
    fingerprint: str,
    request: BuildRequest,
) -> BuildOutcome:
    """Pull the fingerprinted image, building and pushing it on a miss.

    On a miss the image is built once, tagged with the fingerprint, re-tagged
    locally as latest, and both tags are pushed (fingerprint first). A
    failure at any of those steps propagates; tags already pushed are left
    in place.

    Args:
        docker: Image builder client.
        location: Repository pull/push location.
        fingerprint: Build fingerprint.
        request: Build request used on a miss.

    Returns:
        BuildOutcome.CACHE_HIT if the image was pulled, BuildOutcome.BUILT
        if it was built and published.

    Raises:
        ImageCommandError: If build, tag or push fails.
    """
    image = ImageReference(location, fingerprint)
    latest = ImageReference(location, LATEST_TAG)

    banner(f"Pulling {image}")
    if docker.pull(str(image)):
        logger.info("Found cached image %s", image)
        return BuildOutcome.CACHE_HIT

    banner(f"Building {image}")
    docker.build(request, str(image))

    logger.info("Tagging %s as %s", image, latest)
    docker.tag(str(image), str(latest))

    banner(f"Pushing {image}")
    docker.push(str(image))
    banner(f"Pushing {latest}")
    docker.push(str(latest))

    return BuildOutcome.BUILT


__all__ = ["pull_or_build"]
