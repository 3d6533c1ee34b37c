"""Direct golang.org/x/crypto usage, how far behind each repository is, and a Slack summary."""
from __future__ import annotations

import logging
import re
from typing import List, Optional

import requests

from ..findings import Finding, Severity
from ..github.graphql_utils import GraphQLError
from ..github.models import Repository
from ..gomod import GO_MOD, Requirement
from ..pipeline import ReferenceDataError, ScanSummary
from ..slack import SlackNotifier, build_xcrypto_message
from ..versions import VersionStatus, compare, parse_version, sort_versions
from .dependency import GoModDependencyChecker

logger = logging.getLogger(__name__)

XCRYPTO_MODULE = 'golang.org/x/crypto'
GO_PROXY_URL = 'https://proxy.golang.org'


def fetch_latest_module_version(client, module: str) -> str:
    url = f"{GO_PROXY_URL}/{module}/@latest"
    try:
        response = client.fetch_url(url)
        response.raise_for_status()
        version = response.json()['Version']
    except (requests.RequestException, KeyError, ValueError) as e:
        raise ReferenceDataError(f"Could not determine the latest {module} version from {url}: {e}") from e
    return version


def patched_version_floor(client, module: str) -> Optional[str]:
    """Highest first-patched version across the module's security advisories."""
    try:
        vulnerabilities = client.graphql.list_security_vulnerabilities(module, ecosystem='GO')
    except (requests.RequestException, GraphQLError) as e:
        logger.warning(f"Could not query advisories for {module}: {e}")
        return None
    patched = []
    for vuln in vulnerabilities:
        if not vuln.first_patched:
            continue
        try:
            parse_version(vuln.first_patched)
        except ValueError:
            logger.debug(f"Ignoring unparseable patched version {vuln.first_patched!r} ({vuln.ghsa_id})")
            continue
        patched.append(vuln.first_patched)
    if not patched:
        return None
    return sort_versions(patched)[-1]


class XCryptoChecker(GoModDependencyChecker):
    name = 'xcrypto'
    title = 'golang.org/x/crypto Usage Report'
    tracking_issue_title = 'Tracking golang.org/x/crypto Usage'
    module = XCRYPTO_MODULE
    pr_title_pattern = re.compile(r'x/crypto', re.IGNORECASE)

    def __init__(self, client, slack: Optional[SlackNotifier] = None,
                 latest: Optional[str] = None, advisory_floor: Optional[str] = None):
        super().__init__(client)
        self.slack = slack
        self.latest = latest
        self.advisory_floor = advisory_floor

    def prepare(self) -> None:
        if not self.latest:
            self.latest = fetch_latest_module_version(self.client, self.module)
        if self.advisory_floor is None:
            self.advisory_floor = patched_version_floor(self.client, self.module)
        logger.info(f"Latest {self.module}: {self.latest}; advisory floor: {self.advisory_floor or 'unknown'}")

    def build_finding(self, repo: Repository, requirement: Requirement) -> Optional[Finding]:
        version = requirement.version
        try:
            status = compare(version, self.latest)
        except ValueError:
            logger.warning(f"{repo.full_name}: unrecognized {self.module} version {version!r}")
            status = VersionStatus.CURRENT
        vulnerable = False
        if self.advisory_floor:
            try:
                vulnerable = compare(version, self.advisory_floor) == VersionStatus.OUTDATED
            except ValueError:
                vulnerable = False

        if vulnerable:
            severity = Severity.HIGH.value
            description = f"{version} predates fixes for published advisories (patched in {self.advisory_floor})"
        elif status == VersionStatus.OUTDATED:
            severity = Severity.MEDIUM.value
            description = f"{version} is behind the latest release {self.latest}"
        else:
            severity = Severity.INFO.value
            description = f"{version} is the latest release"
        return Finding(
            severity=severity,
            pattern=self.module,
            description=description,
            files=[GO_MOD],
            count=1,
            branch=repo.default_branch,
            metadata={'version': version, 'latest': self.latest or '', 'outdated': str(status == VersionStatus.OUTDATED).lower()},
        )

    @staticmethod
    def outdated_count(summary: ScanSummary) -> int:
        if summary.renderer is None:
            return 0
        return sum(1 for result in summary.renderer.results
                   if any(f.metadata.get('outdated') == 'true' for f in result.findings))

    def report_header(self, summary: ScanSummary) -> List[str]:
        lines = [f"**Latest {self.module}:** `{self.latest}`  "]
        if self.advisory_floor:
            lines.append(f"**Minimum patched version (advisories):** `{self.advisory_floor}`  ")
        lines.append(f"**Repositories behind latest:** {self.outdated_count(summary)}")
        return lines

    def finish(self, summary: ScanSummary) -> None:
        if self.slack is None:
            return
        message = build_xcrypto_message(
            total_repos=summary.repos_scanned,
            org_count=len(summary.orgs),
            using=summary.repos_with_findings,
            outdated=self.outdated_count(summary),
            latest=self.latest,
            tracking_url=summary.tracking_url,
        )
        self.slack.post(message)
