#!/usr/bin/env python3
"""
golangci-lint version scanner.

Finds the golangci-lint version each Go repository pins (GitHub Actions
workflow, then Makefile, then .golangci.yml) and reports those older than the
latest golangci-lint release.

Usage:
- python scan_golangci_lint.py -v
- python scan_golangci_lint.py --create-issues --org openshift-kni
"""
import logging
import sys

from telco_bot.checkers.golangci_lint import GolangciLintChecker
from telco_bot.cli import (
    CommandParser, add_common_arguments, apply_common_arguments, load_config, run_scan, setup_logging,
)
from telco_bot.github import GitHubClient


def main():
    config = load_config()

    parser = CommandParser(description='Report repositories pinning an outdated golangci-lint')
    add_common_arguments(parser, config, per_repo_issues=True)
    parser.add_argument('--latest', type=str, help='Compare against this version instead of the latest release')
    args = parser.parse_args()

    if args.quiet:
        args.verbose = 0
    setup_logging(args.verbose, 'scan_golangci_lint')
    apply_common_arguments(args, config)

    with GitHubClient(token=config.GITHUB_TOKEN, base_url=config.GITHUB_API) as client:
        latest = args.latest.lstrip('v') if args.latest else None
        checker = GolangciLintChecker(client, latest=latest)
        summary = run_scan(config, client, checker, args)

    logging.info(f"golangci-lint scan completed: {summary.repos_with_findings} outdated repositories")


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
