"""Flat environment property reader.

CI plugins receive structured configuration flattened into environment
variables. Lists use an index suffix convention:

    NAME=first
    NAME_0=second
    NAME_1=third

and mappings use a key suffix (``NAME_<KEY>=value``). This module turns those
back into Python values. It never raises for missing keys.
"""

from __future__ import annotations

import re
from collections.abc import Mapping


def read_scalar(environ: Mapping[str, str], key: str) -> str | None:
    """Return the value of a single variable.

    Args:
        environ: Environment mapping to read from.
        key: Full variable name.

    Returns:
        The value, or None if the variable is not set.
    """
    return environ.get(key)


def read_list(environ: Mapping[str, str], key: str) -> list[str]:
    """Read an index-suffixed list of values.

    The bare ``key`` (if set) comes first. Then every ``key_<digits>``
    variable is appended in ascending lexical order of the variable name,
    so ``key_10`` comes before ``key_2``.

    Args:
        environ: Environment mapping to read from.
        key: Base variable name.

    Returns:
        Ordered list of values (empty if nothing is set).
    """
    values: list[str] = []

    bare = environ.get(key)
    if bare is not None:
        values.append(bare)

    pattern = re.compile(rf"^{re.escape(key)}_[0-9]+$")
    for name in sorted(n for n in environ if pattern.match(n)):
        values.append(environ[name])

    return values


def read_mapping(environ: Mapping[str, str], prefix: str) -> dict[str, str]:
    """Read ``prefix_<NAME>=value`` variables into a mapping.

    Args:
        environ: Environment mapping to read from.
        prefix: Variable name prefix, without the trailing underscore.

    Returns:
        Dictionary of ``NAME -> value`` in variable name order.
    """
    start = f"{prefix}_"
    result: dict[str, str] = {}
    for name in sorted(environ):
        if name.startswith(start) and len(name) > len(start):
            result[name[len(start) :]] = environ[name]
    return result


__all__ = ["read_list", "read_mapping", "read_scalar"]
