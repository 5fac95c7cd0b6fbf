#!/usr/bin/env python3
"""
Interactive-session detection and browser launch.

``os.isatty`` is a built-in and cannot be intercepted through a session, so
``is_interactive`` wraps it in a plain function that tests can substitute.
"""

import logging
import os
import sys
import webbrowser

logger = logging.getLogger(__name__)


def is_interactive() -> bool:
    """Whether the process is attached to a person rather than a pipe or CI runner."""
    if hasattr(sys, "ps1") or sys.flags.interactive:
        return True
    stdin = sys.stdin
    if stdin is None:
        return False
    try:
        fd = stdin.fileno()
    except (AttributeError, OSError, ValueError):
        return False
    return os.isatty(fd)


def open_in_browser(url: str) -> bool:
    """Opens ``url`` in the default browser when running interactively.

    Returns:
        bool: True if a browser was launched.
    """
    if not is_interactive():
        logger.info("Not running interactively; not opening %s", url)
        return False
    logger.info("Opening %s in the default browser", url)
    return bool(webbrowser.open(url))
