"""Registry repository management.

This module handles:
- Repository lookup, creation and tagging
- Expiration policy installation
- Registry login
"""

from ci_image_cache.registry.client import (
    RegistryClient,
    RegistryError,
    RepositoryNotFoundError,
)

__all__ = ["RegistryClient", "RegistryError", "RepositoryNotFoundError"]
