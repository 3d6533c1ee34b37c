"""Checkers keyed on a direct go.mod requirement."""
from __future__ import annotations

import logging
import re
from typing import List, Optional, Pattern

import requests

from ..findings import Finding
from ..github.models import PullRequest, Repository
from ..gomod import GO_MOD, Requirement, direct_requirement
from ..pipeline import Checker
from ..report import escape_cell, repo_link

logger = logging.getLogger(__name__)


def related_pull_request(client, full_name: str, title_pattern: Pattern) -> Optional[PullRequest]:
    """First open pull request whose title matches ``title_pattern``."""
    try:
        pulls = client.list_open_pull_requests(full_name)
    except requests.RequestException as e:
        logger.debug(f"Could not list pull requests of {full_name}: {e}")
        return None
    for pr in pulls:
        if title_pattern.search(pr.title):
            return pr
    return None


def pr_cell(finding: Finding) -> str:
    number, url = finding.metadata.get('pr'), finding.metadata.get('pr_url')
    if not number:
        return '-'
    return f"[#{number}]({url})" if url else f"#{number}"


class GoModDependencyChecker(Checker):
    """Reports repositories that require ``module`` directly (indirect requirements are ignored)."""

    manifest_path = GO_MOD
    module: str = ''
    pr_title_pattern: Optional[Pattern] = None
    report_columns = ('Repository', 'Version', 'Open PR', 'Description')

    def __init__(self, client):
        self.client = client

    def build_finding(self, repo: Repository, requirement: Requirement) -> Optional[Finding]:
        raise NotImplementedError

    def check(self, repo: Repository, manifest: Optional[str]) -> List[Finding]:
        requirement = direct_requirement(manifest or '', self.module)
        if requirement is None:
            return []
        finding = self.build_finding(repo, requirement)
        if finding is None:
            return []
        if self.pr_title_pattern is not None:
            pr = related_pull_request(self.client, repo.full_name, self.pr_title_pattern)
            if pr is not None:
                finding.metadata['pr'] = str(pr.number)
                finding.metadata['pr_url'] = pr.html_url
        return [finding]

    def report_cells(self, repo: Repository, finding: Finding) -> List[str]:
        return [
            repo_link(repo.full_name),
            f"`{finding.metadata.get('version', '?')}`",
            pr_cell(finding),
            escape_cell(finding.description),
        ]


class GomockChecker(GoModDependencyChecker):
    """Direct use of the archived github.com/golang/mock module."""

    name = 'gomock'
    title = 'Deprecated golang/mock Usage Report'
    tracking_issue_title = 'Tracking Deprecated golang/mock Usage'
    module = 'github.com/golang/mock'
    pr_title_pattern = re.compile(r'gomock|golang/mock|uber\.org/mock', re.IGNORECASE)
    group_by_severity = False

    def build_finding(self, repo: Repository, requirement: Requirement) -> Optional[Finding]:
        return Finding(
            severity='HIGH',
            pattern=self.module,
            description='github.com/golang/mock is archived; migrate to go.uber.org/mock',
            files=[GO_MOD],
            count=1,
            branch=repo.default_branch,
            metadata={'version': requirement.version},
        )

    def report_footer(self, summary) -> List[str]:
        return [
            "## Migration",
            "",
            "Replace `github.com/golang/mock` with the maintained fork `go.uber.org/mock`:",
            "",
            "```",
            "go get go.uber.org/mock@latest",
            "find . -name '*.go' -not -path './vendor/*' | xargs sed -i 's#github.com/golang/mock#go.uber.org/mock#g'",
            "go mod tidy",
            "```",
        ]
