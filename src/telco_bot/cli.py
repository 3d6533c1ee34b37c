"""Helpers shared by the command-line entry points."""
from __future__ import annotations

import argparse
import logging
import os
import shutil
import sys
from typing import Iterable, List, Optional

from .config import TelcoBotConfig
from .pipeline import Checker, ReferenceDataError, ScanMode, ScanPipeline, ScanSummary


class CommandParser(argparse.ArgumentParser):
    """ArgumentParser that exits with status 1 on invalid arguments."""

    def error(self, message):
        self.print_usage(sys.stderr)
        print(f"{self.prog}: error: {message}", file=sys.stderr)
        sys.exit(1)


def setup_logging(verbosity: int = 1, log_name: str = "telco_bot"):
    level = logging.INFO
    if verbosity > 1:
        level = logging.DEBUG
    elif verbosity == 0:
        level = logging.WARNING
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    try:
        os.makedirs('logs', exist_ok=True)
        handlers.append(logging.FileHandler(f'logs/{log_name}.log'))
    except OSError as e:
        print(f"Warning: file logging disabled: {e}", file=sys.stderr)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )


def add_common_arguments(parser: argparse.ArgumentParser, config: TelcoBotConfig,
                         per_repo_issues: bool = False) -> None:
    """Flags every scanner understands."""
    parser.add_argument('--org', type=str, action='append',
                        help='Scan only this organization (repeatable; default: configured orgs)')
    parser.add_argument('--days', type=int, default=config.INACTIVITY_DAYS,
                        help=f'Inactivity threshold in days for abandoned repos (default: {config.INACTIVITY_DAYS})')
    if per_repo_issues:
        parser.add_argument('--create-issues', action='store_true',
                            help='Create, update or close an issue on each affected repository')
    parser.add_argument('--no-tracking', action='store_true',
                        help='Do not update the central tracking issue')
    parser.add_argument('--clear-cache', action='store_true',
                        help='Delete the results cache before scanning')
    parser.add_argument('-f', '--force', action='store_true',
                        help='Ignore the results cache for this run')
    parser.add_argument('--dry-run', action='store_true',
                        help='Log issue changes instead of making them')
    parser.add_argument('--token', type=str, help='Personal access token (overrides env)')
    parser.add_argument('--output-dir', type=str, default=config.REPORT_DIR,
                        help=f'Directory for Markdown reports (default: {config.REPORT_DIR})')
    parser.add_argument('-v', '--verbose', action='count', default=1, help='Increase verbosity')
    parser.add_argument('-q', '--quiet', action='store_true', help='Suppress output')


def add_mode_argument(parser: argparse.ArgumentParser, default: ScanMode) -> None:
    parser.add_argument('--mode', type=ScanMode, choices=list(ScanMode), default=default,
                        help=f'Scanning mode: api (code search) or clone (local checkouts) (default: {default.value})')


def load_config(require_token: bool = False) -> TelcoBotConfig:
    """Build the configuration or exit with status 1 on invalid settings.

    The token is normally checked by :func:`ensure_token` once ``--token``
    has been applied.
    """
    try:
        return TelcoBotConfig(require_token=require_token)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Check the settings in your environment or .env", file=sys.stderr)
        sys.exit(1)


def ensure_token(config: TelcoBotConfig) -> None:
    if not config.GITHUB_TOKEN:
        print("Error: a GitHub token is required", file=sys.stderr)
        print("Please set GITHUB_TOKEN in your environment or .env, or pass --token", file=sys.stderr)
        sys.exit(1)


def apply_common_arguments(args: argparse.Namespace, config: TelcoBotConfig) -> None:
    """Copy command-line overrides onto the configuration."""
    if args.token:
        config.GITHUB_TOKEN = args.token
    ensure_token(config)
    if args.org:
        config.ORGS = list(args.org)
        logging.info(f"Using organizations from CLI: {', '.join(config.ORGS)}")
    if args.days is not None:
        if args.days <= 0:
            logging.error("--days must be a positive number")
            sys.exit(1)
        config.INACTIVITY_DAYS = args.days
    if args.output_dir != config.REPORT_DIR:
        config.REPORT_DIR = os.path.abspath(args.output_dir)
    config.ensure_dirs()


def missing_tools(tools: Iterable[str]) -> List[str]:
    return [tool for tool in tools if shutil.which(tool) is None]


def require_tools(tools: Iterable[str], hint: Optional[str] = None) -> None:
    """Exit with status 1 when a required executable is not on PATH."""
    missing = missing_tools(tools)
    if missing:
        logging.error(f"Missing required tool(s): {', '.join(missing)}")
        if hint:
            logging.error(hint)
        sys.exit(1)


def run_scan(config: TelcoBotConfig, client, checker: Checker,
             args: argparse.Namespace) -> ScanSummary:
    """Run ``checker`` through the pipeline; exits with status 1 if reference data is unavailable."""
    pipeline = ScanPipeline.from_config(
        config, client, checker,
        create_issues=getattr(args, 'create_issues', False),
        update_tracking=not args.no_tracking,
        force=args.force,
        clear_cache=args.clear_cache,
        dry_run=args.dry_run,
    )
    try:
        summary = pipeline.run(config.ORGS)
    except ReferenceDataError as e:
        logging.error(f"{e}")
        sys.exit(1)
    if summary.tracking_url:
        logging.info(f"Tracking issue: {summary.tracking_url}")
    return summary
