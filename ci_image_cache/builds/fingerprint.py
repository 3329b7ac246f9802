"""Fingerprint computation for image builds.

This module handles:
- Collecting every input that affects the built image
- Hashing each input in a fixed order
- Folding the per-input digests into a short, stable fingerprint

The fingerprint is used as the image tag in the registry, so the input
order, the digest algorithm and the truncation length must stay stable for
existing caches to keep hitting.
"""

from __future__ import annotations

import glob
import hashlib
import logging
import os
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from ci_image_cache.progress import banner
from ci_image_cache.properties import read_scalar

if TYPE_CHECKING:
    from ci_image_cache.config import Settings

logger = logging.getLogger(__name__)

FINGERPRINT_LENGTH = 7


class FingerprintError(Exception):
    """Raised when a fingerprint input cannot be read."""

    def __init__(self, message: str, code: str = "fingerprint_error") -> None:
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class FingerprintInputs:
    """All inputs that identify a buildable configuration.

    Attributes:
        dockerfile: Path to the Dockerfile.
        target: Target stage name, or None.
        architecture: Host architecture identifier.
        build_args: Build arguments as KEY or KEY=VALUE, in declared order.
        cache_on: Cache-input globs, in declared order.
    """

    dockerfile: str
    target: str | None
    architecture: str
    build_args: tuple[str, ...] = field(default_factory=tuple)
    cache_on: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_settings(cls, settings: Settings) -> FingerprintInputs:
        """Create fingerprint inputs from plugin settings."""
        return cls(
            dockerfile=settings.dockerfile,
            target=settings.target,
            architecture=settings.host_architecture,
            build_args=tuple(settings.build_args),
            cache_on=tuple(settings.cache_on),
        )


def hash_bytes(data: bytes) -> str:
    """Return the hex sha1 digest of some bytes."""
    return hashlib.sha1(data).hexdigest()


def hash_text(text: str) -> str:
    """Return the hex sha1 digest of some UTF-8 text."""
    return hash_bytes(text.encode("utf-8"))


def _read_file(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise FingerprintError(
            f"Failed to read {path}: {e}",
            code="input_unreadable",
        ) from e


def resolve_build_arg(arg: str, environ: Mapping[str, str] | None = None) -> str:
    """Resolve a build argument to its KEY=VALUE form.

    A bare name takes its value from the environment (empty if unset),
    mirroring how docker resolves ``--build-arg NAME``.

    Args:
        arg: Build argument as KEY or KEY=VALUE.
        environ: Environment to resolve bare names from (default: os.environ).

    Returns:
        The argument as KEY=VALUE.
    """
    if "=" in arg:
        return arg
    if environ is None:
        environ = os.environ
    return f"{arg}={read_scalar(environ, arg) or ''}"


def expand_cache_globs(
    patterns: tuple[str, ...] | list[str],
    base_dir: Path | None = None,
) -> Iterator[tuple[str, Path]]:
    """Expand cache-input globs into the files they match.

    Patterns are expanded in declared order with recursive ``**`` support.
    Matches within one pattern keep the filesystem enumeration order.
    Directories and paths that do not exist are skipped. A pattern that
    yields no file is skipped with a warning.

    Args:
        patterns: Glob patterns.
        base_dir: Directory relative patterns are resolved against
                  (default: current working directory).

    Yields:
        Tuples of (pattern, matched file path).
    """
    for pattern in patterns:
        found = False
        for match in glob.glob(pattern, root_dir=base_dir, recursive=True):
            path = Path(base_dir, match) if base_dir is not None else Path(match)
            # Older glob yields "dir/" for "dir/**" even when dir is missing
            if not os.path.lexists(path) or path.is_dir():
                continue
            found = True
            yield pattern, path
        if not found:
            logger.warning("Cache glob matched no files: %s", pattern)


def collect_digests(
    inputs: FingerprintInputs,
    environ: Mapping[str, str] | None = None,
    base_dir: Path | None = None,
) -> list[str]:
    """Hash every fingerprint input in order.

    Args:
        inputs: Fingerprint inputs.
        environ: Environment used to resolve bare build arguments.
        base_dir: Directory relative paths are resolved against.

    Returns:
        Hex digests in the order they contribute to the fingerprint.

    Raises:
        FingerprintError: If the Dockerfile or a matched file is unreadable.
    """
    digests: list[str] = []

    dockerfile = Path(inputs.dockerfile)
    if base_dir is not None:
        dockerfile = base_dir / dockerfile
    logger.info("~~~ Dockerfile: %s", inputs.dockerfile)
    if not dockerfile.is_file():
        raise FingerprintError(
            f"Dockerfile not found: {dockerfile}",
            code="dockerfile_not_found",
        )
    digests.append(hash_bytes(_read_file(dockerfile)))

    logger.info("~~~ Target: %s", inputs.target or "")
    digests.append(hash_text(inputs.target or ""))

    logger.info("~~~ Architecture: %s", inputs.architecture)
    digests.append(hash_text(inputs.architecture))

    if inputs.build_args:
        logger.info("~~~ Build args")
    for arg in inputs.build_args:
        resolved = resolve_build_arg(arg, environ)
        # Values can be secrets; only the name goes to the log
        logger.info("  %s", resolved.split("=", 1)[0])
        digests.append(hash_text(resolved))

    current_pattern: str | None = None
    for pattern, path in expand_cache_globs(inputs.cache_on, base_dir):
        if pattern != current_pattern:
            logger.info("~~~ Cache glob: %s", pattern)
            current_pattern = pattern
        logger.info("  %s", path)
        digests.append(hash_bytes(_read_file(path)))

    return digests


def compute_fingerprint(
    inputs: FingerprintInputs,
    environ: Mapping[str, str] | None = None,
    base_dir: Path | None = None,
) -> str:
    """Compute the fingerprint of a build configuration.

    The fingerprint is the sha1 of the concatenated hex digests of every
    input (see collect_digests), truncated to 7 hex characters.

    Args:
        inputs: Fingerprint inputs.
        environ: Environment used to resolve bare build arguments.
        base_dir: Directory relative paths are resolved against.

    Returns:
        Fingerprint as a 7 character hex string.

    Raises:
        FingerprintError: If an input file cannot be read.
    """
    banner("Calculating fingerprint")
    digests = collect_digests(inputs, environ=environ, base_dir=base_dir)
    fingerprint = hash_text("".join(digests))[:FINGERPRINT_LENGTH]
    logger.info("Fingerprint: %s (%d inputs)", fingerprint, len(digests))
    return fingerprint


__all__ = [
    "FINGERPRINT_LENGTH",
    "FingerprintError",
    "FingerprintInputs",
    "collect_digests",
    "compute_fingerprint",
    "expand_cache_globs",
    "hash_bytes",
    "hash_text",
    "resolve_build_arg",
]
