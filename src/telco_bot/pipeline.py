"""
The shared enumerate, classify, scan and publish flow.

A :class:`Checker` describes one kind of scan (what to fetch, how to judge a
repository, how to word issues). :class:`ScanPipeline` runs any checker over
the configured organizations:

1. enumerate non-archived repositories of every organization, then the
   checker's individually listed repositories;
2. skip forks, abandoned repositories, repositories without the checker's
   manifest and blocklisted repositories, consulting the classification cache
   before each network call and recording fresh classifications;
3. reuse fresh results from the results cache or run the checker;
4. optionally sync one issue per repository, then the tracking issue;
5. write the Markdown report.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, List, Optional, Sequence, Set, Tuple

import requests

from .caches import ClassificationCache, ClassificationKind, ResultsCache
from .config import INDIVIDUAL_REPOSITORIES, TelcoBotConfig
from .findings import Finding
from .github.models import Repository
from .github.utils import read_repo_list
from .gomod import GO_MOD
from .issues import DesiredState, IssueIndex, IssueLifecycleManager, SyncResult
from .report import ReportRenderer, default_cells

logger = logging.getLogger(__name__)


class ScanMode(str, Enum):
    API = 'api'
    CLONE = 'clone'


class RepoOutcome(str, Enum):
    SCANNED = 'scanned'
    CACHED = 'cached'
    FORK = 'fork'
    ABANDONED = 'abandoned'
    NO_MANIFEST = 'no-manifest'
    BLOCKLISTED = 'blocklisted'
    UNSUPPORTED = 'unsupported'
    ERROR = 'error'


SKIPPED_OUTCOMES = {
    RepoOutcome.FORK, RepoOutcome.ABANDONED, RepoOutcome.NO_MANIFEST,
    RepoOutcome.BLOCKLISTED, RepoOutcome.UNSUPPORTED,
}


class ReferenceDataError(RuntimeError):
    """Reference data a checker needs (release feeds, latest versions) is unavailable."""


class ScanError(RuntimeError):
    """A single repository could not be scanned; the run continues."""


class Checker(ABC):
    """One kind of compliance scan plugged into :class:`ScanPipeline`."""

    #: Short identifier used for cache and report file names
    name: str = ''
    #: Heading of the report and tracking issue
    title: str = ''
    #: Title of the aggregated tracking issue, None for no tracking issue
    tracking_issue_title: Optional[str] = None
    #: File whose absence classifies a repository as "no-manifest"
    manifest_path: Optional[str] = GO_MOD
    #: Primary languages this checker applies to, None for all
    languages: Optional[Sequence[str]] = None
    #: Hand-maintained lists, relative to the lists directory
    blocklist_file: Optional[str] = None
    repo_list_file: Optional[str] = None
    report_columns: Tuple[str, ...] = ('Repository', 'Finding', 'Files', 'Description')
    group_by_severity: bool = True
    uses_results_cache: bool = True

    def prepare(self) -> None:
        """Fetch reference data once per run. Failures here abort the run."""

    @abstractmethod
    def check(self, repo: Repository, manifest: Optional[str]) -> List[Finding]:
        """Findings for one repository; an empty list means compliant."""

    def issue_title(self, repo: Repository) -> Optional[str]:
        """Per-repository issue title, None when the checker files no such issues."""
        return None

    def issue_body(self, repo: Repository, findings: List[Finding]) -> str:
        return ''

    def report_cells(self, repo: Repository, finding: Finding) -> List[str]:
        return default_cells(repo, finding)

    def report_header(self, summary: 'ScanSummary') -> List[str]:
        return []

    def report_footer(self, summary: 'ScanSummary') -> List[str]:
        return []

    def finish(self, summary: 'ScanSummary') -> None:
        """Hook run after reports and issues are published."""


@dataclass
class ScanSummary:
    checker: str
    orgs: List[str]
    outcomes: Counter = field(default_factory=Counter)
    renderer: Optional[ReportRenderer] = None
    issue_results: List[SyncResult] = field(default_factory=list)
    issue_failures: int = 0
    org_failures: List[str] = field(default_factory=list)
    tracking_issue: Optional[SyncResult] = None
    report_path: Optional[str] = None

    @property
    def repos_examined(self) -> int:
        return sum(self.outcomes.values())

    @property
    def repos_scanned(self) -> int:
        return self.outcomes[RepoOutcome.SCANNED] + self.outcomes[RepoOutcome.CACHED]

    @property
    def repos_with_findings(self) -> int:
        return self.renderer.repos_with_findings if self.renderer else 0

    @property
    def tracking_url(self) -> Optional[str]:
        return self.tracking_issue.url if self.tracking_issue and self.tracking_issue.url else None

    def log(self) -> None:
        skipped = ', '.join(f"{o.value}={self.outcomes[o]}" for o in RepoOutcome if self.outcomes[o])
        logger.info(f"{self.checker}: examined {self.repos_examined} repositories ({skipped or 'none'})")
        logger.info(f"{self.checker}: {self.repos_with_findings} repositories with findings")
        if self.issue_failures:
            logger.warning(f"{self.checker}: {self.issue_failures} issue operations failed")
        if self.org_failures:
            logger.warning(f"{self.checker}: could not list repositories of {', '.join(self.org_failures)}")


class ScanPipeline:
    """Runs a :class:`Checker` over organizations and publishes the results."""

    def __init__(
        self,
        client,
        checker: Checker,
        classification: ClassificationCache,
        results: Optional[ResultsCache] = None,
        issues: Optional[IssueLifecycleManager] = None,
        *,
        inactivity_days: int = 180,
        create_issues: bool = False,
        update_tracking: bool = True,
        tracking_repo: Optional[str] = None,
        report_path: Optional[str] = None,
        extra_repos: Sequence[str] = (),
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.client = client
        self.checker = checker
        self.classification = classification
        self.results = results
        self.issues = issues
        self.inactivity_days = inactivity_days
        self.create_issues = create_issues
        self.update_tracking = update_tracking
        self.tracking_repo = tracking_repo
        self.report_path = report_path
        self.extra_repos = list(extra_repos)
        self._now = now

    @classmethod
    def from_config(cls, config: TelcoBotConfig, client, checker: Checker, *,
                    create_issues: bool = False, update_tracking: bool = True,
                    force: bool = False, clear_cache: bool = False,
                    dry_run: bool = False) -> 'ScanPipeline':
        """Wire caches, issue management and report paths from ``config``."""
        blocklist = config.list_path(checker.blocklist_file) if checker.blocklist_file else None
        classification = ClassificationCache(config.CACHE_DIR, blocklist_path=blocklist)
        results = None
        if checker.uses_results_cache:
            results = ResultsCache(config.cache_path(f"{checker.name}-results.json"),
                                   ttl=config.RESULTS_TTL, force=force)
            if clear_cache:
                results.clear()
        issues = IssueLifecycleManager(client, IssueIndex(config.cache_path('issues.json')), dry_run=dry_run)
        extra = read_repo_list(config.list_path(checker.repo_list_file)) if checker.repo_list_file else []
        return cls(
            client, checker, classification, results, issues,
            inactivity_days=config.INACTIVITY_DAYS,
            create_issues=create_issues,
            update_tracking=update_tracking,
            tracking_repo=config.TRACKING_REPO,
            report_path=config.report_path(f"{checker.name}-report.md"),
            extra_repos=extra,
        )

    # Classification

    def _is_abandoned(self, repo: Repository) -> Tuple[bool, Optional[datetime]]:
        last_commit = self.client.get_last_commit_date(repo.full_name, repo.default_branch)
        if last_commit is None:
            return False, None
        cutoff = self._now() - timedelta(days=self.inactivity_days)
        return last_commit < cutoff, last_commit

    def classify(self, repo: Repository) -> Tuple[Optional[RepoOutcome], Optional[str], Optional[datetime]]:
        """Decide whether ``repo`` is skipped.

        Returns ``(skip_outcome, manifest, last_commit)``; ``skip_outcome`` is
        None for repositories that go on to be scanned.
        """
        name = repo.full_name
        if self.classification.is_classified(name, ClassificationKind.FORK):
            return RepoOutcome.FORK, None, None
        if repo.is_fork:
            self.classification.record_classification(name, ClassificationKind.FORK)
            return RepoOutcome.FORK, None, None

        languages = self.checker.languages
        if languages is not None and (repo.language or '') not in languages:
            return RepoOutcome.UNSUPPORTED, None, None

        if self.classification.is_classified(name, ClassificationKind.ABANDONED):
            return RepoOutcome.ABANDONED, None, None
        abandoned, last_commit = self._is_abandoned(repo)
        if abandoned:
            self.classification.record_classification(name, ClassificationKind.ABANDONED)
            return RepoOutcome.ABANDONED, None, last_commit

        manifest = None
        if self.checker.manifest_path:
            if self.classification.is_classified(name, ClassificationKind.NO_MANIFEST):
                return RepoOutcome.NO_MANIFEST, None, last_commit
            if self.results is None or self.results.get(name) is None:
                manifest = self.client.fetch_raw_file(name, repo.default_branch, self.checker.manifest_path)
                if manifest is None:
                    self.classification.record_classification(name, ClassificationKind.NO_MANIFEST)
                    return RepoOutcome.NO_MANIFEST, None, last_commit

        if self.classification.is_blocklisted(name):
            return RepoOutcome.BLOCKLISTED, manifest, last_commit
        return None, manifest, last_commit

    # Per repository

    def process_repository(self, org: str, repo: Repository, summary: ScanSummary) -> RepoOutcome:
        skip, manifest, last_commit = self.classify(repo)
        if skip is not None:
            logger.debug(f"Skipping {repo.full_name}: {skip.value}")
            summary.outcomes[skip] += 1
            return skip

        findings = self.results.get(repo.full_name) if self.results is not None else None
        if findings is not None:
            outcome = RepoOutcome.CACHED
            logger.debug(f"Using cached results for {repo.full_name}")
        else:
            try:
                findings = self.checker.check(repo, manifest)
            except (requests.RequestException, ScanError) as e:
                logger.error(f"Error checking {repo.full_name}: {e}")
                summary.outcomes[RepoOutcome.ERROR] += 1
                return RepoOutcome.ERROR
            outcome = RepoOutcome.SCANNED
            if self.results is not None:
                self.results.put(repo.full_name, findings, repo.default_branch, repo.language)

        summary.outcomes[outcome] += 1
        summary.renderer.record_scanned(org)
        stamp = last_commit.strftime('%Y-%m-%dT%H:%M:%SZ') if last_commit else None
        summary.renderer.add(org, repo, findings, last_commit=stamp)
        if findings:
            logger.info(f"{repo.full_name}: {len(findings)} finding(s)")

        if self.create_issues and self.issues is not None:
            self._sync_repo_issue(repo, findings, summary)
        return outcome

    def _sync_repo_issue(self, repo: Repository, findings: List[Finding], summary: ScanSummary) -> None:
        title = self.checker.issue_title(repo)
        if not title:
            return
        if findings:
            desired, body = DesiredState.SHOULD_EXIST, self.checker.issue_body(repo, findings)
        else:
            desired, body = DesiredState.SHOULD_NOT_EXIST, ''
        try:
            summary.issue_results.append(self.issues.sync(repo.full_name, title, desired, body))
        except requests.RequestException as e:
            logger.error(f"Issue sync failed for {repo.full_name}: {e}")
            summary.issue_failures += 1

    # Whole run

    def _iter_targets(self, orgs: Sequence[str], summary: ScanSummary):
        seen: Set[str] = set()
        for org in orgs:
            logger.info(f"Organization: {org}")
            try:
                repos = self.client.list_organization_repositories(org)
            except requests.RequestException as e:
                logger.error(f"Error fetching repositories for {org}: {e}")
                summary.org_failures.append(org)
                continue
            logger.info(f"Found {len(repos)} non-archived repositories in {org}")
            for repo in repos:
                if repo.full_name not in seen:
                    seen.add(repo.full_name)
                    yield org, repo
        for name in self.extra_repos:
            if name in seen:
                continue
            try:
                repo = self.client.get_repository(name)
            except requests.RequestException as e:
                logger.error(f"Error fetching repository {name}: {e}")
                continue
            if repo.is_archived:
                logger.debug(f"Skipping archived repository {name}")
                continue
            seen.add(name)
            yield INDIVIDUAL_REPOSITORIES, repo

    def run(self, orgs: Sequence[str]) -> ScanSummary:
        checker = self.checker
        checker.prepare()
        summary = ScanSummary(checker=checker.name, orgs=list(orgs))
        summary.renderer = ReportRenderer(
            title=checker.title,
            orgs=list(orgs),
            columns=checker.report_columns,
            cells=checker.report_cells,
            group_by_severity=checker.group_by_severity,
        )

        for org, repo in self._iter_targets(orgs, summary):
            self.process_repository(org, repo, summary)

        if self.results is not None:
            self.results.touch()

        header = checker.report_header(summary)
        footer = checker.report_footer(summary)
        if self.update_tracking and checker.tracking_issue_title and self.issues is not None and self.tracking_repo:
            body = summary.renderer.render_tracking_body(header, footer)
            try:
                summary.tracking_issue = self.issues.sync(
                    self.tracking_repo, checker.tracking_issue_title, DesiredState.SHOULD_EXIST, body,
                    reopen=summary.repos_with_findings > 0,
                )
            except requests.RequestException as e:
                logger.error(f"Tracking issue update failed: {e}")
                summary.issue_failures += 1

        if self.report_path:
            summary.renderer.write(self.report_path, header, footer)
            summary.report_path = self.report_path
            logger.info(f"Report written to {self.report_path}")

        checker.finish(summary)
        summary.log()
        return summary
