"""Build orchestration module.

This module handles:
- Fingerprint computation
- Running the image builder
- Pull-or-build against the registry
"""

from ci_image_cache.builds.fingerprint import FingerprintError, compute_fingerprint
from ci_image_cache.builds.service import pull_or_build

__all__ = ["FingerprintError", "compute_fingerprint", "pull_or_build"]
