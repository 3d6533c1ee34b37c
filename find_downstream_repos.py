#!/usr/bin/env python3
"""
Find downstream copies of upstream projects in an organization.

Flags forks, repositories named after well-known upstream projects
(prometheus, etcd, coredns, ...) and repositories whose description mentions
being a downstream or mirror. The candidates are written as a Markdown table
that can be pasted into a scanner blocklist review.

Usage:
- python find_downstream_repos.py
- python find_downstream_repos.py --org openshift --limit 50 --output reports/downstream.md
"""
import logging
import os
import sys

import requests

from telco_bot.cli import CommandParser, ensure_token, load_config, setup_logging
from telco_bot.downstream import find_downstream, render_downstream_report
from telco_bot.github import GitHubClient


def main():
    config = load_config()

    parser = CommandParser(description='List repositories that look like downstream copies of upstream projects')
    parser.add_argument('--org', type=str, default='openshift', help='Organization to inspect (default: openshift)')
    parser.add_argument('--limit', type=int, help='Stop after this many candidates')
    parser.add_argument('--output', type=str,
                        help='Markdown output file (default: <report dir>/downstream-<org>.md)')
    parser.add_argument('--token', type=str, help='Personal access token (overrides env)')
    parser.add_argument('-v', '--verbose', action='count', default=1, help='Increase verbosity')
    parser.add_argument('-q', '--quiet', action='store_true', help='Suppress output')
    args = parser.parse_args()

    if args.quiet:
        args.verbose = 0
    setup_logging(args.verbose, 'find_downstream_repos')

    if args.limit is not None and args.limit <= 0:
        logging.error("--limit must be a positive number")
        sys.exit(1)
    if args.token:
        config.GITHUB_TOKEN = args.token
    ensure_token(config)

    output = args.output or config.report_path(f"downstream-{args.org}.md")
    with GitHubClient(token=config.GITHUB_TOKEN, base_url=config.GITHUB_API) as client:
        try:
            repos = client.list_organization_repositories(args.org)
        except requests.RequestException as e:
            logging.error(f"Error fetching repositories for {args.org}: {e}")
            sys.exit(1)

    logging.info(f"Inspecting {len(repos)} repositories of {args.org}")
    candidates = find_downstream(repos, limit=args.limit)
    os.makedirs(os.path.dirname(os.path.abspath(output)), exist_ok=True)
    with open(output, 'w', encoding='utf-8') as f:
        f.write(render_downstream_report(args.org, candidates))
    logging.info(f"{len(candidates)} downstream candidates written to {output}")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        sys.exit(1)
    except Exception as e:
        logging.error(f"Unexpected error: {e}")
        if logging.getLogger().getEffectiveLevel() <= logging.DEBUG:
            import traceback
            traceback.print_exc()
        sys.exit(1)
