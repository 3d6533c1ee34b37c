#!/usr/bin/env python3
"""
Deprecated io/ioutil usage scanner.

Lists Go repositories whose non-test, non-vendored sources still import
io/ioutil (deprecated since Go 1.16), with the number of occurrences and any
open pull request that already removes them.

Usage:
- Code search (default): python scan_ioutil.py -v
- Local clones: python scan_ioutil.py --mode clone
"""
import logging
import sys

from telco_bot.checkers.ioutil import IoutilChecker
from telco_bot.cli import (
    CommandParser, add_common_arguments, add_mode_argument, apply_common_arguments, load_config,
    require_tools, run_scan, setup_logging,
)
from telco_bot.github import GitHubClient
from telco_bot.pipeline import ScanMode


def main():
    config = load_config()

    parser = CommandParser(description='Report Go repositories still importing io/ioutil')
    add_common_arguments(parser, config)
    add_mode_argument(parser, ScanMode.API)
    args = parser.parse_args()

    if args.quiet:
        args.verbose = 0
    setup_logging(args.verbose, 'scan_ioutil')
    apply_common_arguments(args, config)

    if args.mode == ScanMode.CLONE:
        require_tools(['git'], 'Install git or rerun with --mode api')

    with GitHubClient(token=config.GITHUB_TOKEN, base_url=config.GITHUB_API) as client:
        checker = IoutilChecker(client, mode=args.mode, local_repos_dir=config.LOCAL_REPOS_DIR,
                                token=config.GITHUB_TOKEN)
        summary = run_scan(config, client, checker, args)

    logging.info(f"io/ioutil scan completed: {summary.repos_with_findings} repositories still import it")


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
