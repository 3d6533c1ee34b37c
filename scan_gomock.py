#!/usr/bin/env python3
"""
Deprecated golang/mock usage scanner.

github.com/golang/mock is archived; go.uber.org/mock is the maintained fork.
Lists every active repository that still requires github.com/golang/mock
directly in go.mod, along with any open pull request that already migrates it.

Usage:
- python scan_gomock.py -v
- python scan_gomock.py --org redhat-best-practices-for-k8s --force
"""
import logging
import sys

from telco_bot.checkers.dependency import GomockChecker
from telco_bot.cli import (
    CommandParser, add_common_arguments, apply_common_arguments, load_config, run_scan, setup_logging,
)
from telco_bot.github import GitHubClient


def main():
    config = load_config()

    parser = CommandParser(description='Report repositories that still depend on github.com/golang/mock')
    add_common_arguments(parser, config)
    args = parser.parse_args()

    if args.quiet:
        args.verbose = 0
    setup_logging(args.verbose, 'scan_gomock')
    apply_common_arguments(args, config)

    with GitHubClient(token=config.GITHUB_TOKEN, base_url=config.GITHUB_API) as client:
        summary = run_scan(config, client, GomockChecker(client), args)

    logging.info(f"golang/mock scan completed: {summary.repos_with_findings} repositories still use it")


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
