#!/usr/bin/env python3
"""
Multi-scanner orchestrator for telco-bot.

Runs the scan_* scripts one after another (or in small parallel windows) with
shared flags and writes an orchestration summary with durations, statuses and
links to each scanner's Markdown report.

This orchestrator does NOT reimplement scanning logic; it delegates to the
scripts in this repository.
"""
import argparse
import datetime
import os
import subprocess
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

from telco_bot.cli import CommandParser

# Load environment variables from .env if present
load_dotenv(override=True)

REPO_ROOT = Path(__file__).resolve().parent
LOGS_DIR = REPO_ROOT / "logs"
REPORT_DIR = Path(os.getenv("TELCO_BOT_REPORT_DIR", str(REPO_ROOT / "reports")))
SUMMARY_FILE = REPORT_DIR / "orchestration_summary.md"

# Scanner name -> (script, report file name)
SCANNERS: Dict[str, Dict[str, str]] = {
    "go_version": {"script": "scan_go_version.py", "report": "go-version-report.md"},
    "golangci_lint": {"script": "scan_golangci_lint.py", "report": "golangci-lint-report.md"},
    "gomock": {"script": "scan_gomock.py", "report": "gomock-report.md"},
    "xcrypto": {"script": "scan_xcrypto.py", "report": "xcrypto-report.md"},
    "ioutil": {"script": "scan_ioutil.py", "report": "ioutil-report.md"},
    "tls": {"script": "scan_tls.py", "report": "tls13-report.md"},
    "ubi": {"script": "scan_ubi.py", "report": "ubi-{ubi_version}-report.md"},
}

# Scanners that accept --create-issues
PER_REPO_ISSUE_SCANNERS = {"go_version", "golangci_lint"}
# Scanners that accept --mode
MODE_SCANNERS = {"tls", "ioutil"}


@dataclass
class PlannedRun:
    name: str
    cmd: List[str]

    @property
    def log_file(self) -> Path:
        return LOGS_DIR / f"orchestrate_{self.name}.log"


@dataclass
class RunResult:
    name: str
    command: List[str]
    start: datetime.datetime
    end: datetime.datetime
    returncode: int
    log_file: Path

    @property
    def duration(self) -> str:
        # Whole seconds are enough for a summary table
        return str(self.end - self.start).split(".")[0]

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _verbosity_flags(level: int) -> List[str]:
    if level <= 0:
        return ["-q"]
    # Repeat -v level times (every script counts -v)
    return ["-v" for _ in range(level)]


def _selected_scanners(args: argparse.Namespace) -> List[str]:
    scanners = list(SCANNERS)
    if not args.ubi_version:
        scanners.remove("ubi")
    if args.only:
        only = {s.strip().lower() for s in args.only.split(",") if s.strip()}
        unknown = only - set(SCANNERS)
        if unknown:
            raise SystemExit(f"Unknown scanner(s): {', '.join(sorted(unknown))}")
        if "ubi" in only and not args.ubi_version:
            raise SystemExit("The ubi scanner needs --ubi-version")
        scanners = [s for s in scanners if s in only]
    if args.skip:
        skip = {s.strip().lower() for s in args.skip.split(",") if s.strip()}
        scanners = [s for s in scanners if s not in skip]
    return scanners


def _shared_flags(args: argparse.Namespace) -> List[str]:
    flags: List[str] = []
    for org in args.org or []:
        flags += ["--org", org]
    if args.token:
        flags += ["--token", args.token]
    if args.days:
        flags += ["--days", str(args.days)]
    return flags


def _build_scanner_commands(args: argparse.Namespace) -> List[PlannedRun]:
    verbosity = _verbosity_flags(args.verbose)
    plan: List[PlannedRun] = []
    if args.refresh_caches:
        plan.append(PlannedRun("update_caches",
                               [sys.executable, str(REPO_ROOT / "update_caches.py")] + verbosity + _shared_flags(args)))

    scanner_flags = _shared_flags(args)
    scanner_flags += [flag for flag, wanted in (("--force", args.force),
                                                ("--no-tracking", args.no_tracking),
                                                ("--dry-run", args.issue_dry_run)) if wanted]
    scanner_flags += verbosity

    for name in _selected_scanners(args):
        cmd = [sys.executable, str(REPO_ROOT / SCANNERS[name]["script"])] + scanner_flags
        if args.create_issues and name in PER_REPO_ISSUE_SCANNERS:
            cmd.append("--create-issues")
        if args.mode and name in MODE_SCANNERS:
            cmd += ["--mode", args.mode]
        if args.check_minor and name == "go_version":
            cmd.append("--check-minor")
        if args.no_slack and name == "xcrypto":
            cmd.append("--no-slack")
        if name == "ubi":
            cmd += ["--version", args.ubi_version]
        plan.append(PlannedRun(name, cmd))
    return plan


def _report_path(name: str, args: argparse.Namespace) -> Optional[Path]:
    if name not in SCANNERS:
        return None
    return REPORT_DIR / SCANNERS[name]["report"].format(ubi_version=(args.ubi_version or "").lower())


def _summary_row(result: RunResult, args: argparse.Namespace) -> str:
    report = _report_path(result.name, args)
    report_cell = f"[{report.name}]({os.path.relpath(report, REPORT_DIR)})" if report and report.exists() else ""
    log_target = os.path.relpath(result.log_file, REPORT_DIR) if result.log_file.exists() else str(result.log_file)
    status = "success" if result.ok else "error"
    return (f"| {result.name} | {status} | {result.returncode} | {result.duration} "
            f"| [{result.log_file.name}]({log_target}) | {report_cell} |")


def _write_summary(header: str, results: List[RunResult], args: argparse.Namespace) -> Path:
    REPORT_DIR.mkdir(parents=True, exist_ok=True)
    failed = sum(1 for r in results if not r.ok)
    body = [
        "# Orchestration Summary",
        "",
        f"Generated: {datetime.datetime.now().isoformat(timespec='seconds')}",
        "",
        header,
        "",
        f"**Runs:** {len(results)} | **Failed:** {failed}",
        "",
        "## Results",
        "",
        "| Scanner | Status | Exit Code | Duration | Log | Report |",
        "|---------|--------|-----------:|---------:|-----|--------|",
    ]
    body += [_summary_row(r, args) for r in results]
    SUMMARY_FILE.write_text("\n".join(body) + "\n", encoding="utf-8")
    return SUMMARY_FILE


def _run(command: List[str], log_file: Path) -> int:
    """Run one script, capturing its output into ``log_file``."""
    proc = subprocess.run(command, cwd=str(REPO_ROOT), text=True, capture_output=True)
    sections = [f"# Command\n{' '.join(_redact(command))}\n", "# STDOUT\n", proc.stdout or ""]
    if proc.stderr:
        sections += ["\n# STDERR\n", proc.stderr]
    log_file.write_text("\n".join(sections), encoding="utf-8")
    return proc.returncode


def _redact(command: List[str]) -> List[str]:
    return ["***" if i and command[i - 1] == "--token" else part for i, part in enumerate(command)]


def _execute(planned: PlannedRun) -> RunResult:
    start = datetime.datetime.now()
    rc = _run(planned.cmd, planned.log_file)
    return RunResult(planned.name, _redact(planned.cmd), start, datetime.datetime.now(), rc, planned.log_file)


def run_orchestrator(args: argparse.Namespace) -> int:
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    plan = _build_scanner_commands(args)

    if args.dry_run:
        print("Planned commands (dry-run):\n")
        for planned in plan:
            print("$", " ".join(_redact(planned.cmd)))
        return 0

    parallel = max(1, int(args.scanners_parallel))
    results: List[RunResult] = []

    # Scanners read the caches, so the refresh runs alone and first
    if plan and plan[0].name == "update_caches":
        results.append(_execute(plan.pop(0)))
        if args.fail_fast and not results[-1].ok:
            plan = []

    with ThreadPoolExecutor(max_workers=parallel) as pool:
        for offset in range(0, len(plan), parallel):
            window = list(pool.map(_execute, plan[offset:offset + parallel]))
            results.extend(window)
            if args.fail_fast and not all(r.ok for r in window):
                break

    orgs = ", ".join(args.org) if args.org else (os.getenv("TELCO_BOT_ORGS") or "(defaults)")
    has_token = bool(args.token or os.getenv("GITHUB_TOKEN"))
    header = "  \n".join([
        f"Organizations: {orgs}",
        f"Parallel scanners: {parallel}",
        f"Per-repository issues: {'yes' if args.create_issues else 'no'}",
        f"Token detected: {'yes' if has_token else 'no'}",
    ])
    print(f"Summary written to {_write_summary(header, results, args)}")

    return 0 if all(r.ok for r in results) else 1


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = CommandParser(description="Run several telco-bot scanners in sequence")
    parser.add_argument("--org", type=str, action="append", help="Organization to scan (repeatable)")
    parser.add_argument("--token", type=str, help="GitHub token (overrides GITHUB_TOKEN)")

    parser.add_argument("--only", type=str, help=f"Comma-separated subset of scanners ({','.join(SCANNERS)})")
    parser.add_argument("--skip", type=str, help="Comma-separated scanners to skip")
    parser.add_argument("--refresh-caches", action="store_true", help="Run update_caches.py before scanning")

    parser.add_argument("--days", type=int, help="Inactivity threshold passed to every scanner")
    parser.add_argument("--create-issues", action="store_true", help="Pass --create-issues to scanners that support it")
    parser.add_argument("--no-tracking", action="store_true", help="Do not update tracking issues")
    parser.add_argument("-f", "--force", action="store_true", help="Ignore results caches")
    parser.add_argument("--issue-dry-run", action="store_true", help="Scanners log issue changes instead of making them")
    parser.add_argument("--mode", choices=["api", "clone"], help="Mode for the tls and ioutil scanners")
    parser.add_argument("--check-minor", action="store_true", help="Pass --check-minor to the Go version scanner")
    parser.add_argument("--no-slack", action="store_true", help="Pass --no-slack to the x/crypto scanner")
    parser.add_argument("--ubi-version", type=str, help="Also run the UBI scanner for this release (e.g. ubi8)")

    parser.add_argument("--scanners-parallel", type=int, default=1, help="How many scanners to run in parallel")
    parser.add_argument("--fail-fast", action="store_true", help="Stop after the first scanner that fails")

    parser.add_argument("-v", "--verbose", action="count", default=1, help="Increase verbosity (repeatable)")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress scanner output (still logs to files)")
    parser.add_argument("--dry-run", action="store_true", help="Print planned commands and exit")

    args = parser.parse_args(argv)

    if args.quiet:
        # Keep at least 0
        args.verbose = 0
    return args


def main() -> None:
    ns = parse_args()
    try:
        rc = run_orchestrator(ns)
        sys.exit(rc)
    except KeyboardInterrupt:
        print("Interrupted by user", file=sys.stderr)
        sys.exit(1)
    except SystemExit:
        # Allow our explicit SystemExit to propagate code
        raise
    except Exception as e:
        print(f"Unexpected error in orchestrator: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
