#!/usr/bin/env python3
"""
UBI base image scanner.

Fetches the common container build files (Dockerfile, Containerfile and a few
well-known subdirectory variants) of every active repository and reports the
ones whose FROM lines use the requested UBI release. Other UBI releases seen
along the way are tallied at the end of the report.

Usage:
- python scan_ubi.py --version ubi8
- python scan_ubi.py --version ubi7 --org redhatci -v
"""
import logging
import sys

from telco_bot.checkers.ubi import UBIChecker
from telco_bot.cli import (
    CommandParser, add_common_arguments, apply_common_arguments, load_config, run_scan, setup_logging,
)
from telco_bot.github import GitHubClient


def main():
    config = load_config()

    parser = CommandParser(description='Find repositories building FROM a given UBI release')
    parser.add_argument('--version', type=str, required=True, help='UBI release to look for, e.g. ubi8')
    add_common_arguments(parser, config)
    args = parser.parse_args()

    if args.quiet:
        args.verbose = 0
    setup_logging(args.verbose, 'scan_ubi')
    apply_common_arguments(args, config)

    with GitHubClient(token=config.GITHUB_TOKEN, base_url=config.GITHUB_API) as client:
        try:
            checker = UBIChecker(client, args.version)
        except ValueError as e:
            logging.error(f"{e}")
            sys.exit(1)
        summary = run_scan(config, client, checker, args)

    logging.info(f"UBI scan completed: {summary.repos_with_findings} repositories use {checker.version}")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        logging.info("Scan interrupted by user")
        sys.exit(1)
    except Exception as e:
        logging.error(f"Unexpected error: {e}")
        if logging.getLogger().getEffectiveLevel() <= logging.DEBUG:
            import traceback
            traceback.print_exc()
        sys.exit(1)
