"""CI image cache - content-addressed container image cache for CI pipelines.

This package fingerprints a Dockerfile build, reuses the image tagged with
that fingerprint from the registry when present, and otherwise builds and
publishes it.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
