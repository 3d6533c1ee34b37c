"""golangci-lint versions pinned in workflows, Makefiles and lint configs."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional

import requests
import yaml

from ..findings import Finding, Severity
from ..github.models import Repository
from ..gomod import GO_MOD
from ..pipeline import Checker, ReferenceDataError, ScanSummary
from ..report import blob_url, repo_link
from ..versions import parse_version, version_lt

logger = logging.getLogger(__name__)

GOLANGCI_LINT_REPO = 'golangci/golangci-lint'
LINT_ACTION = 'golangci/golangci-lint-action'
WORKFLOWS_DIR = '.github/workflows'
CONFIG_FILES = ('.golangci.yml', '.golangci.yaml')

_VERSION = r'v?(\d+\.\d+(?:\.\d+)?)'
MAKEFILE_VARIABLE_RE = re.compile(r'GOLANGCI[_-]?LINT[_-]?VERSION\s*[?:!+]?=\s*' + _VERSION, re.IGNORECASE)
MAKEFILE_INSTALL_RE = re.compile(r'golangci-lint(?:/v\d+)?/cmd/golangci-lint@v(\d+\.\d+(?:\.\d+)?)')
CONFIG_VERSION_RE = re.compile(r'^\s*version:\s*["\']?' + _VERSION, re.MULTILINE)
WORKFLOW_VERSION_RE = re.compile(r'version:\s*["\']?' + _VERSION)


@dataclass
class PinnedVersion:
    version: str
    path: str
    source: str


def _walk_steps(doc: Any) -> Iterator[dict]:
    jobs = doc.get('jobs') if isinstance(doc, dict) else None
    if not isinstance(jobs, dict):
        return
    for job in jobs.values():
        steps = job.get('steps') if isinstance(job, dict) else None
        for step in steps or []:
            if isinstance(step, dict):
                yield step


def workflow_lint_version(content: str) -> Optional[str]:
    """``with.version`` of the golangci-lint action step, if the workflow pins one."""
    try:
        doc = yaml.safe_load(content)
    except yaml.YAMLError:
        doc = None
    if doc is not None:
        for step in _walk_steps(doc):
            uses = str(step.get('uses', ''))
            if not uses.startswith(LINT_ACTION):
                continue
            version = str((step.get('with') or {}).get('version', '')).strip()
            match = re.match(_VERSION + r'$', version)
            if match:
                return match.group(1)
        return None
    # Unparseable YAML: look a few lines below the action reference
    lines = content.splitlines()
    for index, line in enumerate(lines):
        if LINT_ACTION in line:
            for follow in lines[index + 1:index + 4]:
                match = WORKFLOW_VERSION_RE.search(follow)
                if match:
                    return match.group(1)
    return None


def makefile_lint_version(content: str) -> Optional[PinnedVersion]:
    match = MAKEFILE_VARIABLE_RE.search(content)
    if match:
        return PinnedVersion(match.group(1), 'Makefile', 'makefile')
    match = MAKEFILE_INSTALL_RE.search(content)
    if match:
        return PinnedVersion(match.group(1), 'Makefile', 'install')
    return None


def config_lint_version(content: str, path: str) -> Optional[PinnedVersion]:
    match = CONFIG_VERSION_RE.search(content)
    if match:
        return PinnedVersion(match.group(1), path, 'config')
    return None


class GolangciLintChecker(Checker):
    name = 'golangci-lint'
    title = 'golangci-lint Version Report'
    tracking_issue_title = 'Tracking Outdated GolangCI-Lint Versions'
    manifest_path = GO_MOD
    repo_list_file = 'golangci-lint-repo-list.txt'
    blocklist_file = 'golangci-lint-repo-blocklist.txt'
    report_columns = ('Repository', 'Current Version', 'Latest', 'Defined In', 'Source')
    group_by_severity = False

    ISSUE_TITLE = 'Outdated golangci-lint version'

    def __init__(self, client, latest: Optional[str] = None):
        self.client = client
        self.latest = latest

    def prepare(self) -> None:
        if self.latest:
            return
        try:
            tag = self.client.get_latest_release_tag(GOLANGCI_LINT_REPO)
        except requests.RequestException as e:
            raise ReferenceDataError(f"Could not fetch the latest golangci-lint release: {e}") from e
        if not tag:
            raise ReferenceDataError("golangci-lint has no published release")
        self.latest = tag.lstrip('v')
        logger.info(f"Latest golangci-lint release: v{self.latest}")

    def detect(self, repo: Repository) -> Optional[PinnedVersion]:
        """Find the pinned version: workflows first, then the Makefile, then the lint config."""
        name, ref = repo.full_name, repo.default_branch
        for workflow in sorted(self.client.list_directory(name, WORKFLOWS_DIR, ref)):
            if not workflow.endswith(('.yml', '.yaml')):
                continue
            path = f"{WORKFLOWS_DIR}/{workflow}"
            content = self.client.fetch_raw_file(name, ref, path)
            version = workflow_lint_version(content) if content else None
            if version:
                return PinnedVersion(version, path, 'workflow')
        makefile = self.client.fetch_raw_file(name, ref, 'Makefile')
        if makefile:
            pinned = makefile_lint_version(makefile)
            if pinned:
                return pinned
        for path in CONFIG_FILES:
            content = self.client.fetch_raw_file(name, ref, path)
            if content:
                pinned = config_lint_version(content, path)
                if pinned:
                    return pinned
        return None

    def check(self, repo: Repository, manifest: Optional[str]) -> List[Finding]:
        pinned = self.detect(repo)
        if pinned is None:
            logger.debug(f"{repo.full_name}: no pinned golangci-lint version found")
            return []
        try:
            parse_version(pinned.version)
        except ValueError:
            return []
        if not version_lt(pinned.version, self.latest):
            return []
        return [Finding(
            severity=Severity.MEDIUM.value,
            pattern=f"golangci-lint v{pinned.version}",
            description=f"golangci-lint v{pinned.version} is older than v{self.latest}",
            files=[pinned.path],
            count=1,
            branch=repo.default_branch,
            metadata={'current': pinned.version, 'latest': self.latest, 'source': pinned.source},
        )]

    def issue_title(self, repo: Repository) -> Optional[str]:
        return self.ISSUE_TITLE

    def issue_body(self, repo: Repository, findings: List[Finding]) -> str:
        finding = findings[0]
        current = finding.metadata.get('current', '?')
        link = blob_url(repo.full_name, finding.branch or repo.default_branch, finding.first_file)
        return f"""## golangci-lint Update Required

This repository pins golangci-lint `v{current}` in [`{finding.first_file}`]({link}).
The latest release is `v{self.latest}`.

### How to Update
- **GitHub Actions**: set `version: v{self.latest}` on the `{LINT_ACTION}` step.
- **Makefile**: bump the `GOLANGCI_LINT_VERSION` variable or the `go install` reference.
- **.golangci.yml**: review the configuration for options removed in newer releases.

See the [release notes](https://github.com/{GOLANGCI_LINT_REPO}/releases) for breaking changes.

---
*This issue is managed automatically and will be closed once the version is updated.*
"""

    def report_cells(self, repo: Repository, finding: Finding) -> List[str]:
        branch = finding.branch or repo.default_branch
        return [
            repo_link(repo.full_name),
            f"`v{finding.metadata.get('current', '?')}`",
            f"`v{finding.metadata.get('latest', self.latest)}`",
            f"[`{finding.first_file}`]({blob_url(repo.full_name, branch, finding.first_file)})",
            finding.metadata.get('source', ''),
        ]

    def report_header(self, summary: ScanSummary) -> List[str]:
        return [f"**Latest golangci-lint:** `v{self.latest}`"]
