#!/usr/bin/env python3
"""
Sleeps by running the external ``sleep`` program.

The system call goes through ``subprocess.call``; tests substitute it to
simulate failing exit codes without spawning a process.
"""

import logging
import subprocess

logger = logging.getLogger(__name__)


class SleepError(RuntimeError):
    """The external sleep program exited with a non-zero status."""


def sleep(seconds):
    """Sleeps for ``seconds`` using the system ``sleep`` command.

    Raises:
        SleepError: If the command fails or cannot be found (exit code 127).
    """
    cmd = ["sleep", str(seconds)]
    try:
        code = subprocess.call(cmd)
    except FileNotFoundError:
        code = 127
    if code != 0:
        logger.error("Command %s exited with code %s", " ".join(cmd), code)
        raise SleepError(f"sleeping failed (exit code {code})")
