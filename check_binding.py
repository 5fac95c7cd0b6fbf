#!/usr/bin/env python3
"""
Report whether bindings can be intercepted by a session.

Usage:
  python check_binding.py TARGET [TARGET ...] [--require-supported | --require-unsupported]

- Prints a JSON list with one object per target: target, resolved, kind,
  supported, reason.
- Returns exit code 0 on success, 1 if any target does not resolve.
- If --require-supported is provided, exits 1 if any target would be rejected.
- If --require-unsupported is provided, exits 1 if any target would be accepted.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

import bindings
import config

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Check whether bindings can be substituted in a session")
    parser.add_argument("targets", nargs="+", metavar="TARGET", help="dotted 'module.function' path")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--require-supported", action="store_true", help="exit non-zero if any target is rejected")
    group.add_argument("--require-unsupported", action="store_true", help="exit non-zero if any target is accepted")
    parser.add_argument("--verbose", action="store_true", help="log at DEBUG level")
    args = parser.parse_args(argv)

    if args.verbose:
        config.setup_logging(log_level=logging.DEBUG)

    reports = [bindings.describe(target) for target in args.targets]
    print(json.dumps(reports, indent=2))

    exit_code = 0
    for report in reports:
        if report["resolved"] is None:
            logger.error("Could not resolve %s: %s", report["target"], report["reason"])
            exit_code = 1
        elif args.require_supported and not report["supported"]:
            logger.error("%s cannot be intercepted: %s", report["target"], report["reason"])
            exit_code = 1
        elif args.require_unsupported and report["supported"]:
            logger.error("%s was expected to be rejected but is interceptable", report["target"])
            exit_code = 1
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
