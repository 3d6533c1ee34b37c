"""Repositories whose container files build FROM a given UBI release."""
from __future__ import annotations

import logging
import re
from collections import Counter
from typing import List, Optional

from ..findings import Finding, Severity
from ..github.models import Repository
from ..pipeline import Checker, ScanSummary
from ..report import escape_cell, files_cell, repo_link

logger = logging.getLogger(__name__)

CONTAINER_FILES = (
    'Dockerfile',
    'Containerfile',
    'build/Dockerfile',
    'docker/Dockerfile',
    '.dockerfiles/Dockerfile',
    'dockerfiles/Dockerfile',
)

UBI_VERSION_RE = re.compile(r'^ubi\d+$', re.IGNORECASE)
UBI_TOKEN_RE = re.compile(r'ubi\d+(?:-[a-z0-9]+)?', re.IGNORECASE)
FROM_LINE_RE = re.compile(r'^\s*FROM\s+', re.IGNORECASE)


def from_lines(content: str) -> List[str]:
    return [line.strip() for line in content.splitlines() if FROM_LINE_RE.match(line)]


class UBIChecker(Checker):
    name = 'ubi'
    manifest_path = None
    repo_list_file = 'ubi-repo-list.txt'
    report_columns = ('Repository', 'Container Files', 'FROM')
    group_by_severity = False
    uses_results_cache = False

    def __init__(self, client, version: str):
        if not UBI_VERSION_RE.match(version or ''):
            raise ValueError(f"Invalid UBI version {version!r}; expected something like 'ubi8'")
        self.client = client
        self.version = version.lower()
        self.title = f"{self.version.upper()} Base Image Usage Report"
        self.name = f"ubi-{self.version}"
        self._target_re = re.compile(
            rf'^\s*FROM\s+.*{re.escape(self.version)}([/:]|\s|$)', re.IGNORECASE)
        self.other_versions: Counter = Counter()

    def check(self, repo: Repository, manifest: Optional[str]) -> List[Finding]:
        matched: List[str] = []
        examples: List[str] = []
        others = set()
        for path in CONTAINER_FILES:
            content = self.client.fetch_raw_file(repo.full_name, repo.default_branch, path)
            if content is None:
                continue
            for line in from_lines(content):
                if self._target_re.match(line):
                    if path not in matched:
                        matched.append(path)
                    examples.append(line)
                    continue
                for token in UBI_TOKEN_RE.findall(line):
                    others.add(token.lower())
        self.other_versions.update(others)
        if not matched:
            return []
        return [Finding(
            severity=Severity.INFO.value,
            pattern=f"{self.version} base image",
            description=examples[0],
            files=matched,
            count=len(examples),
            branch=repo.default_branch,
        )]

    def report_cells(self, repo: Repository, finding: Finding) -> List[str]:
        return [repo_link(repo.full_name), files_cell(repo, finding), f"`{escape_cell(finding.description)}`"]

    def report_footer(self, summary: ScanSummary) -> List[str]:
        if not self.other_versions:
            return []
        lines = ["## Other UBI Versions Seen", "", "| Image | Repositories |", "|---|---|"]
        for token, count in sorted(self.other_versions.items(), key=lambda kv: (-kv[1], kv[0])):
            lines.append(f"| `{token}` | {count} |")
        return lines
