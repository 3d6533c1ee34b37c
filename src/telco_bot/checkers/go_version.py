"""Flag repositories whose go.mod names a Go release that is no longer supported."""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import requests

from ..findings import Finding, Severity
from ..github.models import Repository
from ..gomod import GO_MOD, go_directive
from ..pipeline import Checker, ReferenceDataError, ScanSummary
from ..report import format_date, repo_link
from ..versions import VersionStatus, classify_against_feed, parse_go_stable_versions

logger = logging.getLogger(__name__)

GO_DOWNLOADS_URL = "https://go.dev/dl/"


def fetch_stable_go_versions(client) -> List[str]:
    """Stable Go releases from the download page, newest first."""
    try:
        response = client.fetch_url(GO_DOWNLOADS_URL)
        response.raise_for_status()
    except requests.RequestException as e:
        raise ReferenceDataError(f"Could not fetch {GO_DOWNLOADS_URL}: {e}") from e
    versions = parse_go_stable_versions(response.text)
    if not versions:
        raise ReferenceDataError(f"No stable Go versions found on {GO_DOWNLOADS_URL}")
    return versions


class GoVersionChecker(Checker):
    name = 'go-version'
    title = 'Go Version Status Report'
    tracking_issue_title = 'Tracking Out of Date Golang Versions'
    manifest_path = GO_MOD
    repo_list_file = 'go-version-repo-list.txt'
    blocklist_file = 'go-version-repo-blocklist.txt'
    report_columns = ('Repository', 'Current Version', 'Recommended', 'Branch', 'Last Updated')
    group_by_severity = False

    ISSUE_TITLE = 'Outdated Go version in go.mod'

    def __init__(self, client, check_minor: bool = False,
                 stable_versions: Optional[Sequence[str]] = None):
        self.client = client
        self.check_minor = check_minor
        self.stable_versions: List[str] = list(stable_versions or [])

    @property
    def latest_stable(self) -> str:
        return self.stable_versions[0]

    def prepare(self) -> None:
        if not self.stable_versions:
            self.stable_versions = fetch_stable_go_versions(self.client)
        logger.info(f"Stable Go versions: {', '.join(self.stable_versions)}")

    def check(self, repo: Repository, manifest: Optional[str]) -> List[Finding]:
        version = go_directive(manifest or '')
        if version is None:
            logger.debug(f"{repo.full_name}: no go directive in go.mod")
            return []
        status, recommended = classify_against_feed(version, self.stable_versions,
                                                    major_only=not self.check_minor)
        if status == VersionStatus.AHEAD:
            logger.info(f"{repo.full_name}: go {version} is newer than every stable release")
        if status != VersionStatus.OUTDATED:
            return []
        return [Finding(
            severity=Severity.HIGH.value,
            pattern=f"go {version}",
            description=f"Go {version} is not a supported release; update to {recommended} or newer",
            files=[GO_MOD],
            count=1,
            branch=repo.default_branch,
            metadata={'current': version, 'recommended': recommended, 'latest': self.latest_stable},
        )]

    def issue_title(self, repo: Repository) -> Optional[str]:
        return self.ISSUE_TITLE

    def issue_body(self, repo: Repository, findings: List[Finding]) -> str:
        meta = findings[0].metadata
        current, recommended = meta.get('current', '?'), meta.get('recommended', self.latest_stable)
        return f"""## Go Version Update Required

This repository is using Go version `{current}`, which is listed in the archived versions on [go.dev/dl/](https://go.dev/dl/).

### Current Status
- **Current Version**: `{current}`
- **Recommended Version**: `{recommended}`
- **Latest Stable**: `{self.latest_stable}`

### Steps to Update
1. Update the `go` directive in `go.mod`:
   ```
   go {recommended}
   ```
2. Run `go mod tidy` to update dependencies
3. Test the build and any affected functionality
4. Update CI/CD workflows if they reference specific Go versions

### Resources
- [Go Downloads](https://go.dev/dl/)
- [Go Release History](https://go.dev/doc/devel/release)

---
*This issue is managed automatically and will be closed once the version is updated.*
"""

    def report_cells(self, repo: Repository, finding: Finding) -> List[str]:
        meta = finding.metadata
        return [
            repo_link(repo.full_name),
            f"`go{meta.get('current', '?')}`",
            f"`go{meta.get('recommended', '?')}`",
            f"`{finding.branch or repo.default_branch}`",
            format_date(repo.pushed_at),
        ]

    def report_header(self, summary: ScanSummary) -> List[str]:
        mode = "Patch-level (including minor versions)" if self.check_minor else "Major version only"
        return [
            f"**Check Mode:** {mode}  ",
            f"**Latest Stable Go Version:** `go{self.latest_stable}`",
        ]

    def report_footer(self, summary: ScanSummary) -> List[str]:
        return [
            "## What to Do",
            "",
            "Repositories listed above use Go versions from the archived section of "
            f"[go.dev/dl/](https://go.dev/dl/). Consider updating to `go{self.latest_stable}`.",
            "",
            "1. Update the `go` directive in `go.mod`",
            "2. Run `go mod tidy`",
            "3. Test the build and functionality",
            "4. Update CI/CD workflows if needed",
        ]
