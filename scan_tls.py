#!/usr/bin/env python3
"""
TLS configuration compliance scanner.

Looks for disabled certificate verification, TLS 1.0/1.1 and caps that prevent
TLS 1.3 in Go, Python, JavaScript/TypeScript and C++ repositories. By default
each repository is cloned (or fast-forwarded) under the local repositories
directory and grepped; --mode api uses GitHub code search instead, which needs
no disk space but is limited to about ten searches a minute.

Usage:
- Local clones (default): python scan_tls.py -v
- Code search only: python scan_tls.py --mode api --org openshift-kni
"""
import logging
import sys

from telco_bot.checkers.tls import TLSComplianceChecker
from telco_bot.cli import (
    CommandParser, add_common_arguments, add_mode_argument, apply_common_arguments, load_config,
    require_tools, run_scan, setup_logging,
)
from telco_bot.github import GitHubClient
from telco_bot.pipeline import ScanMode


def main():
    config = load_config()

    parser = CommandParser(description='Scan repositories for weak or disabled TLS configuration')
    add_common_arguments(parser, config)
    add_mode_argument(parser, ScanMode.CLONE)
    parser.add_argument('--repos-dir', type=str, default=config.LOCAL_REPOS_DIR,
                        help=f'Where clone mode keeps checkouts (default: {config.LOCAL_REPOS_DIR})')
    args = parser.parse_args()

    if args.quiet:
        args.verbose = 0
    setup_logging(args.verbose, 'scan_tls')
    apply_common_arguments(args, config)

    if args.mode == ScanMode.CLONE:
        require_tools(['git'], 'Install git or rerun with --mode api')
        config.LOCAL_REPOS_DIR = args.repos_dir
        logging.info(f"Using local repositories under {config.LOCAL_REPOS_DIR}")

    with GitHubClient(token=config.GITHUB_TOKEN, base_url=config.GITHUB_API) as client:
        checker = TLSComplianceChecker(client, mode=args.mode, local_repos_dir=config.LOCAL_REPOS_DIR,
                                       token=config.GITHUB_TOKEN)
        summary = run_scan(config, client, checker, args)

    severities = summary.renderer.severity_counts() if summary.renderer else {}
    breakdown = ', '.join(f"{label}={count}" for label, count in severities.items() if count)
    logging.info(f"TLS scan completed: {summary.repos_with_findings} repositories with findings"
                 + (f" ({breakdown})" if breakdown else ""))


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
