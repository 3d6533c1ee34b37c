#!/usr/bin/env python3
"""
Go version compliance scanner.

Reads the `go` directive of every active repository's go.mod and compares it
with the stable Go releases published on go.dev. Repositories on an
unsupported release are listed in a Markdown report and the central tracking
issue; with --create-issues each of them also gets (and later loses) its own
issue.

Usage:
- All configured orgs: python scan_go_version.py -v
- One org, minor versions too: python scan_go_version.py --org openshift --check-minor
- With per-repository issues: python scan_go_version.py --create-issues
"""
import logging
import sys

from telco_bot.checkers.go_version import GoVersionChecker
from telco_bot.cli import (
    CommandParser, add_common_arguments, apply_common_arguments, load_config, run_scan, setup_logging,
)
from telco_bot.github import GitHubClient


def main():
    config = load_config()

    parser = CommandParser(description='Report repositories whose go.mod targets an unsupported Go release')
    add_common_arguments(parser, config, per_repo_issues=True)
    parser.add_argument('--check-minor', action='store_true',
                        help='Compare full versions (1.22.3 vs 1.22.5) instead of major.minor lines')
    args = parser.parse_args()

    if args.quiet:
        args.verbose = 0
    setup_logging(args.verbose, 'scan_go_version')
    apply_common_arguments(args, config)

    with GitHubClient(token=config.GITHUB_TOKEN, base_url=config.GITHUB_API) as client:
        checker = GoVersionChecker(client, check_minor=args.check_minor)
        summary = run_scan(config, client, checker, args)

    logging.info(f"Go version scan completed: {summary.repos_with_findings} outdated repositories")


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
