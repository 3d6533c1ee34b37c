"""
Markdown rendering for scan reports and tracking issues.

Results are grouped by organization (configured order, then individual
repositories) and, unless disabled, by severity. Within a table repositories
are ordered by their last commit, newest first.
"""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .config import INDIVIDUAL_REPOSITORIES
from .findings import Finding, severity_rank
from .github.models import Repository

ISSUE_ROW_LIMIT = 30

CellFormatter = Callable[[Repository, Finding], List[str]]


def blob_url(repo: str, branch: str, path: str) -> str:
    return f"https://github.com/{repo}/blob/{branch}/{path}"


def repo_link(full_name: str) -> str:
    return f"[`{full_name}`](https://github.com/{full_name})"


def escape_cell(text: str) -> str:
    return (text or '').replace('|', '\\|').replace('\n', ' ')


def files_cell(repo: Repository, finding: Finding) -> str:
    """Link to the first file, with a "(+N more)" suffix for the rest."""
    if not finding.files:
        return '-'
    branch = finding.branch or repo.default_branch
    first = finding.files[0]
    cell = f"[`{escape_cell(first)}`]({blob_url(repo.full_name, branch, first)})"
    extra = len(finding.files) - 1
    if extra > 0:
        cell += f" (+{extra} more)"
    return cell


def default_cells(repo: Repository, finding: Finding) -> List[str]:
    return [repo_link(repo.full_name), escape_cell(finding.pattern), files_cell(repo, finding),
            escape_cell(finding.description)]


def format_date(value: Optional[str]) -> str:
    return value[:10] if value else 'Unknown'


@dataclass
class RepoResult:
    org: str
    repo: Repository
    findings: List[Finding]
    last_commit: Optional[str] = None

    @property
    def sort_date(self) -> str:
        return self.last_commit or self.repo.pushed_at or ''


@dataclass
class OrgStats:
    scanned: int = 0
    with_findings: int = 0


@dataclass
class ReportRenderer:
    """Accumulates per-repository results and renders Markdown."""
    title: str
    orgs: Sequence[str]
    columns: Tuple[str, ...] = ('Repository', 'Finding', 'Files', 'Description')
    cells: CellFormatter = default_cells
    group_by_severity: bool = True
    results: List[RepoResult] = field(default_factory=list)
    stats: Dict[str, OrgStats] = field(default_factory=dict)

    def _org_order(self) -> List[str]:
        order = list(self.orgs)
        for name in list(self.stats) + [r.org for r in self.results]:
            if name not in order and name != INDIVIDUAL_REPOSITORIES:
                order.append(name)
        order.append(INDIVIDUAL_REPOSITORIES)
        return order

    def record_scanned(self, org: str) -> None:
        self.stats.setdefault(org, OrgStats()).scanned += 1

    def add(self, org: str, repo: Repository, findings: List[Finding],
            last_commit: Optional[str] = None) -> None:
        if not findings:
            return
        self.results.append(RepoResult(org, repo, list(findings), last_commit))
        self.stats.setdefault(org, OrgStats()).with_findings += 1

    @property
    def repos_with_findings(self) -> int:
        return len(self.results)

    @property
    def total_scanned(self) -> int:
        return sum(s.scanned for s in self.stats.values())

    def severity_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for result in self.results:
            for finding in result.findings:
                counts[finding.severity] = counts.get(finding.severity, 0) + 1
        return dict(sorted(counts.items(), key=lambda kv: severity_rank(kv[0])))

    def grouped(self) -> "OrderedDict[str, OrderedDict[str, List[Tuple[Repository, Finding, str]]]]":
        """``{org: {severity: [(repo, finding, sort_date), ...]}}`` in report order."""
        by_org: "OrderedDict[str, OrderedDict[str, List[Tuple[Repository, Finding, str]]]]" = OrderedDict()
        for org in self._org_order():
            rows: Dict[str, List[Tuple[Repository, Finding, str]]] = {}
            for result in self.results:
                if result.org != org:
                    continue
                for finding in result.findings:
                    key = finding.severity if self.group_by_severity else ''
                    rows.setdefault(key, []).append((result.repo, finding, result.sort_date))
            if not rows:
                continue
            ordered = OrderedDict()
            for key in sorted(rows, key=severity_rank):
                ordered[key] = sorted(rows[key], key=lambda row: row[2], reverse=True)
            by_org[org] = ordered
        return by_org

    def _table(self, rows: List[Tuple[Repository, Finding, str]], max_rows: Optional[int]) -> List[str]:
        lines = [
            '| ' + ' | '.join(self.columns) + ' |',
            '|' + '|'.join('---' for _ in self.columns) + '|',
        ]
        shown = rows if max_rows is None else rows[:max_rows]
        for repo, finding, _ in shown:
            lines.append('| ' + ' | '.join(self.cells(repo, finding)) + ' |')
        hidden = len(rows) - len(shown)
        if hidden > 0:
            lines.append('')
            lines.append(f"_...and {hidden} more_")
        return lines

    def _org_table(self) -> List[str]:
        lines = [
            '| Organization | Repositories Scanned | Status |',
            '|---|---|---|',
        ]
        for org in self._org_order():
            stats = self.stats.get(org)
            if stats is None:
                if org == INDIVIDUAL_REPOSITORIES:
                    continue
                stats = OrgStats()
            if stats.scanned == 0:
                status = 'No repositories'
            elif stats.with_findings == 0:
                status = '✅ Compliant'
            else:
                status = f"{stats.with_findings} with issues"
            name = org if org == INDIVIDUAL_REPOSITORIES else f"[{org}](https://github.com/{org})"
            lines.append(f"| {name} | {stats.scanned} | {status} |")
        compliant = [org for org, s in self.stats.items() if s.scanned and not s.with_findings]
        if compliant:
            lines.append('')
            lines.append('### Fully Compliant Organizations')
            lines.append('')
            lines.extend(f"- {org}" for org in compliant)
        return lines

    def render(self, header: Sequence[str] = (), footer: Sequence[str] = (),
               max_rows: Optional[int] = None, now: Optional[datetime] = None) -> str:
        """Render the Markdown document.

        ``max_rows`` caps every table (the tracking issue uses :data:`ISSUE_ROW_LIMIT`).
        """
        now = now or datetime.now(timezone.utc)
        year_ago = (now - timedelta(days=365)).strftime('%Y-%m-%dT%H:%M:%SZ')
        lines = [f"# {self.title}", '', f"**Last Updated:** {now.strftime('%Y-%m-%d %H:%M:%S UTC')}  "]
        lines.extend(header)
        lines.extend(['', '## Summary', '',
                      f"- **Total Repositories Scanned:** {self.total_scanned}",
                      f"- **Repositories with Findings:** {self.repos_with_findings}"])
        for severity, count in self.severity_counts().items():
            if self.group_by_severity:
                lines.append(f"- **{severity}:** {count}")
        lines.extend(['', '## Organizations Scanned', ''])
        lines.extend(self._org_table())
        lines.extend(['', '---', ''])

        grouped = self.grouped()
        if not grouped:
            lines.extend(['## ✅ All Clear!', '', 'No findings in any scanned repository.', ''])
        for org, sections in grouped.items():
            org_results = [r for r in self.results if r.org == org]
            active = sum(1 for r in org_results if r.sort_date and r.sort_date > year_ago)
            if org == INDIVIDUAL_REPOSITORIES:
                lines.append(f"## {org}")
            else:
                lines.append(f"## [{org}](https://github.com/{org})")
            lines.append('')
            note = f"**Repositories with findings:** {len(org_results)}"
            if active:
                note += f" ({active} updated in the last year)"
            lines.extend([note, ''])
            for severity, rows in sections.items():
                if severity:
                    lines.extend([f"### {severity} ({len(rows)})", ''])
                lines.extend(self._table(rows, max_rows))
                lines.append('')
        if footer:
            lines.extend(['---', ''])
            lines.extend(footer)
        return '\n'.join(lines).rstrip() + '\n'

    def render_tracking_body(self, header: Sequence[str] = (), footer: Sequence[str] = (),
                             now: Optional[datetime] = None) -> str:
        return self.render(header, footer, max_rows=ISSUE_ROW_LIMIT, now=now)

    def write(self, path: str, header: Sequence[str] = (), footer: Sequence[str] = ()) -> None:
        with open(path, 'w', encoding='utf-8') as f:
            f.write(self.render(header, footer))
