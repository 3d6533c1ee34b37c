#!/usr/bin/env python3
"""
golang.org/x/crypto usage scanner.

Lists every active repository that requires golang.org/x/crypto directly,
compares the pinned version with the latest module release on the Go proxy
and with the patched versions of published security advisories, and posts a
summary to Slack when XCRYPTO_SLACK_WEBHOOK is set.

Usage:
- python scan_xcrypto.py -v
- python scan_xcrypto.py --no-slack --org openshift-kni
"""
import logging
import sys

from telco_bot.checkers.xcrypto import XCryptoChecker
from telco_bot.cli import (
    CommandParser, add_common_arguments, apply_common_arguments, load_config, run_scan, setup_logging,
)
from telco_bot.github import GitHubClient
from telco_bot.slack import SlackNotifier


def main():
    config = load_config()

    parser = CommandParser(description='Report golang.org/x/crypto versions across repositories')
    add_common_arguments(parser, config)
    parser.add_argument('--no-slack', action='store_true', help='Do not post the Slack summary')
    parser.add_argument('--slack-field', type=str, default='message',
                        help="JSON field carrying the Slack message (default: message; classic webhooks use 'text')")
    args = parser.parse_args()

    if args.quiet:
        args.verbose = 0
    setup_logging(args.verbose, 'scan_xcrypto')
    apply_common_arguments(args, config)

    slack = None
    if config.XCRYPTO_SLACK_WEBHOOK and not args.no_slack:
        slack = SlackNotifier(config.XCRYPTO_SLACK_WEBHOOK, field=args.slack_field)
    elif not args.no_slack:
        logging.info("XCRYPTO_SLACK_WEBHOOK is not set; skipping Slack notification")

    with GitHubClient(token=config.GITHUB_TOKEN, base_url=config.GITHUB_API) as client:
        checker = XCryptoChecker(client, slack=slack)
        summary = run_scan(config, client, checker, args)

    logging.info(f"x/crypto scan completed: {summary.repos_with_findings} repositories use it, "
                 f"{XCryptoChecker.outdated_count(summary)} behind {checker.latest}")


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
