"""Progress banners for the pipeline log.

The agent renders lines starting with ``--- `` as expanded log groups and
``~~~ `` as collapsed ones. Banners go through logging so they end up on
stderr next to the rest of the diagnostics, never on stdout.
"""

import logging

logger = logging.getLogger("ci_image_cache")


def banner(title: str, collapsed: bool = False) -> str:
    """Emit a log group banner.

    Args:
        title: Group title.
        collapsed: Render the group collapsed by default.

    Returns:
        The banner line that was logged.
    """
    line = f"{'~~~' if collapsed else '---'} {title}"
    logger.info(line)
    return line


__all__ = ["banner"]
