"""Go sources still importing the deprecated io/ioutil package."""
from __future__ import annotations

import re
from typing import List, Optional

from ..findings import Finding, Severity
from ..github.models import Repository
from ..gomod import GO_MOD
from ..report import files_cell, repo_link
from ..scanner import LanguageProfile, PatternRule
from .content import ContentChecker
from .dependency import pr_cell, related_pull_request

IOUTIL_RULE = PatternRule(
    Severity.MEDIUM.value,
    'io/ioutil import',
    'io/ioutil is deprecated since Go 1.16; use io and os instead',
    r'"io/ioutil"',
    '"io/ioutil"',
)
IOUTIL_PROFILE = LanguageProfile('Go', ('*.go',), [IOUTIL_RULE], search_language='go')

PR_TITLE_RE = re.compile(r'ioutil', re.IGNORECASE)


class IoutilChecker(ContentChecker):
    name = 'ioutil'
    title = 'Deprecated io/ioutil Usage Report'
    tracking_issue_title = 'Tracking Deprecated io/ioutil Package Usage'
    manifest_path = GO_MOD
    report_columns = ('Repository', 'Files', 'Occurrences', 'Open PR')
    group_by_severity = False

    def profiles_for(self, repo: Repository) -> List[LanguageProfile]:
        return [IOUTIL_PROFILE]

    def check(self, repo: Repository, manifest: Optional[str]) -> List[Finding]:
        findings = super().check(repo, manifest)
        if findings:
            pr = related_pull_request(self.client, repo.full_name, PR_TITLE_RE)
            if pr is not None:
                for finding in findings:
                    finding.metadata.update({'pr': str(pr.number), 'pr_url': pr.html_url})
        return findings

    def report_cells(self, repo: Repository, finding: Finding) -> List[str]:
        return [repo_link(repo.full_name), files_cell(repo, finding), str(finding.count), pr_cell(finding)]

    def report_footer(self, summary) -> List[str]:
        return [
            "## Replacements",
            "",
            "| io/ioutil | Replacement |",
            "|---|---|",
            "| `ioutil.ReadAll` | `io.ReadAll` |",
            "| `ioutil.ReadFile` | `os.ReadFile` |",
            "| `ioutil.WriteFile` | `os.WriteFile` |",
            "| `ioutil.ReadDir` | `os.ReadDir` |",
            "| `ioutil.TempDir` | `os.MkdirTemp` |",
            "| `ioutil.TempFile` | `os.CreateTemp` |",
            "| `ioutil.NopCloser` | `io.NopCloser` |",
            "| `ioutil.Discard` | `io.Discard` |",
        ]
