#!/usr/bin/env python3
"""
Rebuild the shared classification caches.

Classifies every non-archived repository of the configured organizations from
scratch (fork, abandoned for --days, missing go.mod) and rewrites
caches/forks.txt, caches/abandoned.txt and caches/no-gomod.txt. Scanners only
ever add to these files; this command is how entries get removed again, e.g.
when an abandoned repository becomes active.

With --close-issues, per-repository scanner issues that are still open on
forks or abandoned repositories are closed.

Usage:
- python update_caches.py
- python update_caches.py --days 365 --dry-run
"""
import logging
import sys

from telco_bot.caches import ClassificationCache, ClassificationKind
from telco_bot.checkers.go_version import GoVersionChecker
from telco_bot.checkers.golangci_lint import GolangciLintChecker
from telco_bot.cli import CommandParser, ensure_token, load_config, setup_logging
from telco_bot.github import GitHubClient
from telco_bot.issues import IssueAction, IssueIndex, IssueLifecycleManager
from telco_bot.maintenance import classify_organizations, close_stale_issues, write_caches

PER_REPO_ISSUE_TITLES = (GoVersionChecker.ISSUE_TITLE, GolangciLintChecker.ISSUE_TITLE)


def main():
    config = load_config()

    parser = CommandParser(description='Rebuild the fork / abandoned / no-go.mod caches')
    parser.add_argument('--org', type=str, action='append',
                        help='Refresh only this organization (repeatable; implies --merge)')
    parser.add_argument('--days', type=int, default=config.INACTIVITY_DAYS,
                        help=f'Inactivity threshold in days (default: {config.INACTIVITY_DAYS})')
    parser.add_argument('--merge', action='store_true',
                        help='Add to the existing caches instead of replacing them')
    parser.add_argument('--close-issues', action='store_true',
                        help='Close open scanner issues on forks and abandoned repositories')
    parser.add_argument('--dry-run', action='store_true', help='Show the new counts without writing anything')
    parser.add_argument('--token', type=str, help='Personal access token (overrides env)')
    parser.add_argument('-v', '--verbose', action='count', default=1, help='Increase verbosity')
    parser.add_argument('-q', '--quiet', action='store_true', help='Suppress output')
    args = parser.parse_args()

    if args.quiet:
        args.verbose = 0
    setup_logging(args.verbose, 'update_caches')

    if args.days <= 0:
        logging.error("--days must be a positive number")
        sys.exit(1)
    if args.token:
        config.GITHUB_TOKEN = args.token
    ensure_token(config)
    merge = args.merge
    if args.org:
        config.ORGS = list(args.org)
        merge = True
    config.ensure_dirs()

    classification = ClassificationCache(config.CACHE_DIR)
    before = classification.counts()

    with GitHubClient(token=config.GITHUB_TOKEN, base_url=config.GITHUB_API) as client:
        refresh = classify_organizations(client, config.ORGS, args.days)
        if len(refresh.failed_orgs) == len(config.ORGS):
            logging.error("Could not list repositories of any organization; caches left untouched")
            sys.exit(1)

        for kind in ClassificationKind:
            logging.info(f"{kind.value}: {before[kind.value]} -> {refresh.count(kind)}")
        logging.info(f"active: {len(refresh.active)}")

        if args.dry_run:
            logging.info("Dry run: caches not written")
        else:
            write_caches(classification, refresh, merge=merge)

        if args.close_issues:
            issues = IssueLifecycleManager(client, IssueIndex(config.cache_path('issues.json')),
                                           dry_run=args.dry_run)
            stale = sorted(refresh.classified[ClassificationKind.FORK]
                           | refresh.classified[ClassificationKind.ABANDONED])
            results = close_stale_issues(issues, stale, PER_REPO_ISSUE_TITLES)
            closed = sum(1 for r in results if r.action == IssueAction.CLOSE)
            logging.info(f"Closed {closed} issues on forks and abandoned repositories")

    logging.info("Cache update completed")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        logging.info("Cache update interrupted by user")
        sys.exit(1)
    except Exception as e:
        logging.error(f"Unexpected error: {e}")
        if logging.getLogger().getEffectiveLevel() <= logging.DEBUG:
            import traceback
            traceback.print_exc()
        sys.exit(1)
