"""Shared fixtures: an in-memory GitHub client and a throttle that never sleeps."""
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import pytest
import requests

from telco_bot.github.models import Issue, IssueState, PullRequest, Repository
from telco_bot.github.rate_limit import SearchThrottle

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def make_repo(full_name: str, language: Optional[str] = 'Go', fork: bool = False,
              archived: bool = False, branch: str = 'main', description: Optional[str] = None) -> Repository:
    owner, name = full_name.split('/', 1)
    return Repository(
        name=name,
        full_name=full_name,
        html_url=f"https://github.com/{full_name}",
        description=description,
        language=language,
        pushed_at='2025-05-01T00:00:00Z',
        is_fork=fork,
        is_archived=archived,
        default_branch=branch,
    )


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = '', json_data=None):
        self.status_code = status_code
        self.text = text
        self._json = json_data

    def json(self):
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)


class FakeGitHubClient:
    """Implements the subset of GitHubClient the scanners call, backed by dicts."""

    def __init__(self):
        self.orgs: Dict[str, List[Repository]] = {}
        self.repos: Dict[str, Repository] = {}
        self.files: Dict[Tuple[str, str], str] = {}
        self.directories: Dict[Tuple[str, str], List[str]] = {}
        self.commit_dates: Dict[str, datetime] = {}
        self.search_results: Dict[Tuple[str, str], List[str]] = {}
        self.pulls: Dict[str, List[PullRequest]] = {}
        self.releases: Dict[str, str] = {}
        self.urls: Dict[str, FakeResponse] = {}
        self.issues: Dict[str, Dict[int, Issue]] = {}
        self.comments: Dict[Tuple[str, int], List[str]] = {}
        self.failing_orgs: set = set()
        self.fail_issue_writes = False
        self.calls: List[Tuple] = []

    # Setup helpers

    def add_repo(self, org: str, repo: Repository, last_commit: Optional[datetime] = None) -> Repository:
        self.orgs.setdefault(org, []).append(repo)
        self.repos[repo.full_name] = repo
        self.commit_dates[repo.full_name] = last_commit or NOW - timedelta(days=3)
        return repo

    def add_file(self, full_name: str, path: str, content: str) -> None:
        self.files[(full_name, path)] = content

    def add_issue(self, full_name: str, number: int, title: str, state: str = 'open',
                  body: str = '') -> Issue:
        issue = Issue(number=number, title=title, state=IssueState(state),
                      html_url=f"https://github.com/{full_name}/issues/{number}", body=body)
        self.issues.setdefault(full_name, {})[number] = issue
        return issue

    # Repositories

    def list_organization_repositories(self, org: str, include_archived: bool = False) -> List[Repository]:
        self.calls.append(('list_org', org))
        if org in self.failing_orgs:
            raise requests.HTTPError(f"listing {org} failed")
        repos = list(self.orgs.get(org, []))
        if not include_archived:
            repos = [r for r in repos if not r.is_archived]
        return repos

    def get_repository(self, full_name: str) -> Repository:
        if full_name not in self.repos:
            raise requests.HTTPError(f"{full_name} not found")
        return self.repos[full_name]

    def get_last_commit_date(self, full_name: str, ref: str) -> Optional[datetime]:
        self.calls.append(('last_commit', full_name))
        return self.commit_dates.get(full_name)

    def fetch_raw_file(self, full_name: str, ref: str, path: str,
                       attempts: int = 1, timeout: int = 30) -> Optional[str]:
        self.calls.append(('raw', full_name, path))
        return self.files.get((full_name, path))

    def list_tree_paths(self, full_name: str, ref: str) -> List[str]:
        self.calls.append(('tree', full_name))
        return sorted(path for (name, path) in self.files if name == full_name)

    def list_directory(self, full_name: str, path: str, ref: Optional[str] = None) -> List[str]:
        return list(self.directories.get((full_name, path.strip('/')), []))

    def get_latest_release_tag(self, full_name: str) -> Optional[str]:
        return self.releases.get(full_name)

    def list_open_pull_requests(self, full_name: str) -> List[PullRequest]:
        return list(self.pulls.get(full_name, []))

    def search_code(self, query: str, full_name: str, language: Optional[str] = None,
                    per_page: int = 100) -> List[str]:
        self.calls.append(('search', full_name, query))
        for (name, needle), paths in self.search_results.items():
            if name == full_name and query.startswith(needle):
                return sorted(paths)
        return []

    def fetch_url(self, url: str, timeout: int = 30) -> FakeResponse:
        return self.urls.get(url, FakeResponse(404))

    # Issues

    def _issues(self, full_name: str) -> Dict[int, Issue]:
        return self.issues.setdefault(full_name, {})

    def search_issues_by_title(self, full_name: str, title: str) -> List[Issue]:
        self.calls.append(('search_issues', full_name, title))
        return [i for i in self._issues(full_name).values() if i.title == title]

    def get_issue(self, full_name: str, number: int) -> Optional[Issue]:
        return self._issues(full_name).get(number)

    def create_issue(self, full_name: str, title: str, body: str) -> Issue:
        if self.fail_issue_writes:
            raise requests.HTTPError("issue creation failed")
        self.calls.append(('create_issue', full_name, title))
        number = max(self._issues(full_name), default=0) + 1
        return self.add_issue(full_name, number, title, 'open', body)

    def update_issue(self, full_name: str, number: int, body: Optional[str] = None,
                     state: Optional[str] = None) -> Issue:
        if self.fail_issue_writes:
            raise requests.HTTPError("issue update failed")
        self.calls.append(('update_issue', full_name, number, body is not None, state))
        issue = self._issues(full_name)[number]
        if body is not None:
            issue.body = body
        if state is not None:
            issue.state = IssueState(state)
        return issue

    def list_issue_comments(self, full_name: str, number: int) -> List[str]:
        return list(self.comments.get((full_name, number), []))

    def add_issue_comment(self, full_name: str, number: int, body: str) -> None:
        self.calls.append(('comment', full_name, number))
        self.comments.setdefault((full_name, number), []).append(body)

    def count(self, kind: str) -> int:
        return sum(1 for call in self.calls if call[0] == kind)


@pytest.fixture
def client():
    return FakeGitHubClient()


@pytest.fixture
def no_wait_throttle():
    return SearchThrottle(interval_sec=0, sleep=lambda _: None)
