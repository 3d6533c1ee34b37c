"""
REST access to GitHub for the scanners: repository listings, file contents,
code search, issues and pull requests. Advisory lookups go through GraphQL.

Successful GETs are memoized per client for an hour; writes never are.
"""
from __future__ import annotations

import logging
import os
import time
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urljoin

import requests
from cachetools import TTLCache
from cachetools.keys import hashkey

from .graphql_utils import GraphQLClient
from .models import Issue, PullRequest, Repository
from .rate_limit import make_rate_limited_session, request_with_rate_limit
from .utils import paginate

RESPONSE_CACHE_TTL = 3600
RESPONSE_CACHE_SIZE = 1000

RAW_CONTENT_URL = "https://raw.githubusercontent.com"


class BaseGitHubClient:
    """Sessions, response memoization and verb helpers shared by the API methods."""

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: str = "https://api.github.com",
        cache_ttl: int = RESPONSE_CACHE_TTL,
        cache_size: int = RESPONSE_CACHE_SIZE,
        user_agent: str = "telco-bot"
    ) -> None:
        self.token = token or os.getenv("GITHUB_TOKEN")
        self.base_url = base_url.rstrip('/')
        self.user_agent = user_agent
        self.logger = logging.getLogger(self.__class__.__name__)
        self._responses: TTLCache = TTLCache(maxsize=cache_size, ttl=cache_ttl)
        # GitHub hosts get the token; go.dev, the module proxy and Slack must not
        self._session = make_rate_limited_session(self.token, user_agent=user_agent)
        self._public_session = make_rate_limited_session(None, user_agent=user_agent)
        self._graphql_client: Optional[GraphQLClient] = None

    @property
    def graphql(self) -> GraphQLClient:
        """Lazily built GraphQL client sharing the authenticated session."""
        if self._graphql_client is None:
            self._graphql_client = GraphQLClient(
                token=self.token or "",
                api_url=f"{self.base_url}/graphql",
                session=self._session,
            )
        return self._graphql_client

    def _url(self, path: str) -> str:
        return urljoin(f"{self.base_url}/", path.lstrip('/'))

    @staticmethod
    def _response_key(method: str, url: str, params: Optional[Dict[str, Any]] = None) -> str:
        return str(hashkey(method, url, tuple(sorted((params or {}).items()))))

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        return request_with_rate_limit(self._session, method, url, logger=self.logger, **kwargs)

    def _memoized_get(self, url: str, **kwargs) -> requests.Response:
        key = self._response_key('GET', url, kwargs.get('params'))
        cached = self._responses.get(key)
        if cached is not None:
            self.logger.debug(f"Response cache hit: {url}")
            return cached
        response = self._request('GET', url, **kwargs)
        # Only 200s; a 404 may turn into a file later in the run
        if response.status_code == 200:
            self._responses[key] = response
        return response

    def get(self, path: str, cache: bool = True, **kwargs) -> requests.Response:
        url = self._url(path)
        return self._memoized_get(url, **kwargs) if cache else self._request('GET', url, **kwargs)

    def post(self, path: str, **kwargs) -> requests.Response:
        return self._request('POST', self._url(path), **kwargs)

    def patch(self, path: str, **kwargs) -> requests.Response:
        return self._request('PATCH', self._url(path), **kwargs)

    def close(self) -> None:
        self._session.close()
        self._public_session.close()

    def __enter__(self) -> 'BaseGitHubClient':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class GitHubClient(BaseGitHubClient):
    """High-level calls used by the scanners and maintenance scripts."""

    # Repositories

    def get_repository(self, full_name: str) -> Repository:
        """Metadata for one repository; raises on HTTP errors."""
        response = self.get(f"repos/{full_name}")
        response.raise_for_status()
        return Repository.from_dict(response.json())

    def list_organization_repositories(self, org: str, include_archived: bool = False) -> List[Repository]:
        """List every repository of an organization, archived ones excluded by default.

        Falls back to the user endpoint when the name is not an organization.
        """
        params = {'type': 'all', 'sort': 'full_name', 'direction': 'asc'}
        try:
            items = paginate(self._session, self._url(f"orgs/{org}/repos"), params=params)
        except requests.exceptions.HTTPError as e:
            if e.response is None or e.response.status_code != 404:
                raise
            self.logger.info(f"Organization '{org}' not found or inaccessible. Retrying as a user account...")
            items = paginate(self._session, self._url(f"users/{org}/repos"), params=params)

        repos = [Repository.from_dict(item) for item in items]
        if not include_archived:
            repos = [repo for repo in repos if not repo.is_archived]
        return repos

    def get_last_commit_date(self, full_name: str, ref: str) -> Optional[datetime]:
        """Committer date of the newest commit on ``ref``, or None when unavailable."""
        try:
            response = self.get(f"repos/{full_name}/commits/{quote(ref, safe='')}")
            response.raise_for_status()
            date = response.json()['commit']['committer']['date']
        except (requests.RequestException, KeyError, TypeError, ValueError) as e:
            self.logger.debug(f"Could not fetch last commit for {full_name}@{ref}: {e}")
            return None
        return datetime.fromisoformat(date.replace('Z', '+00:00'))

    def fetch_raw_file(self, full_name: str, ref: str, path: str,
                       attempts: int = 1, timeout: int = 30) -> Optional[str]:
        """Fetch file content from raw.githubusercontent.com.

        Returns None when the file does not exist or every attempt failed.
        """
        url = f"{RAW_CONTENT_URL}/{full_name}/{ref}/{path.lstrip('/')}"
        cache_key = self._response_key('RAW', url)
        if cache_key in self._responses:
            return self._responses[cache_key]
        for attempt in range(1, attempts + 1):
            try:
                response = self._session.get(url, timeout=timeout)
            except requests.RequestException as e:
                self.logger.debug(f"Raw fetch of {url} failed (attempt {attempt}/{attempts}): {e}")
            else:
                if response.status_code == 200:
                    self._responses[cache_key] = response.text
                    return response.text
                if response.status_code == 404:
                    return None
                self.logger.debug(f"Raw fetch of {url} returned HTTP {response.status_code}")
            if attempt < attempts:
                time.sleep(1)
        return None

    def list_tree_paths(self, full_name: str, ref: str) -> List[str]:
        """Every blob path in the repository tree at ``ref``."""
        response = self.get(f"repos/{full_name}/git/trees/{quote(ref, safe='')}", params={'recursive': '1'})
        response.raise_for_status()
        data = response.json()
        if data.get('truncated'):
            self.logger.warning(f"Git tree for {full_name}@{ref} is truncated; results may be incomplete")
        return [entry['path'] for entry in data.get('tree', []) if entry.get('type') == 'blob']

    def list_directory(self, full_name: str, path: str, ref: Optional[str] = None) -> List[str]:
        """File names in a repository directory, empty when it does not exist."""
        params = {'ref': ref} if ref else None
        response = self.get(f"repos/{full_name}/contents/{path.strip('/')}", params=params)
        if response.status_code == 404:
            return []
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, list):
            return []
        return [entry['name'] for entry in data if entry.get('type') == 'file']

    def get_latest_release_tag(self, full_name: str) -> Optional[str]:
        response = self.get(f"repos/{full_name}/releases/latest")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json().get('tag_name')

    def list_open_pull_requests(self, full_name: str) -> List[PullRequest]:
        items = paginate(self._session, self._url(f"repos/{full_name}/pulls"), params={'state': 'open'})
        return [PullRequest.from_dict(item) for item in items]

    # Code search

    def search_code(self, query: str, full_name: str, language: Optional[str] = None,
                    per_page: int = 100) -> List[str]:
        """Paths of files in ``full_name`` matching a code-search query.

        Search failures are logged and reported as no match.
        """
        q = f"{query} repo:{full_name}"
        if language:
            q += f" language:{language}"
        try:
            response = self.get("search/code", cache=False, params={'q': q, 'per_page': min(per_page, 100)})
            response.raise_for_status()
        except requests.RequestException as e:
            self.logger.warning(f"Code search failed for {full_name} ({query!r}): {e}")
            return []
        return sorted({item['path'] for item in response.json().get('items', [])})

    # Issues

    def search_issues_by_title(self, full_name: str, title: str) -> List[Issue]:
        """Issues (any state) whose title equals ``title`` exactly."""
        escaped = title.replace('"', '\\"')
        q = f'repo:{full_name} is:issue in:title "{escaped}"'
        items = paginate(self._session, self._url("search/issues"), params={'q': q}, items_key='items')
        return [Issue.from_dict(item) for item in items if item.get('title') == title]

    def get_issue(self, full_name: str, number: int) -> Optional[Issue]:
        response = self.get(f"repos/{full_name}/issues/{number}", cache=False)
        if response.status_code in (404, 410):
            return None
        response.raise_for_status()
        data = response.json()
        if 'pull_request' in data:
            return None
        return Issue.from_dict(data)

    def create_issue(self, full_name: str, title: str, body: str) -> Issue:
        response = self.post(f"repos/{full_name}/issues", json={'title': title, 'body': body})
        response.raise_for_status()
        return Issue.from_dict(response.json())

    def update_issue(self, full_name: str, number: int, body: Optional[str] = None,
                     state: Optional[str] = None) -> Issue:
        payload: Dict[str, Any] = {}
        if body is not None:
            payload['body'] = body
        if state is not None:
            payload['state'] = state
        response = self.patch(f"repos/{full_name}/issues/{number}", json=payload)
        response.raise_for_status()
        return Issue.from_dict(response.json())

    def list_issue_comments(self, full_name: str, number: int) -> List[str]:
        items = paginate(self._session, self._url(f"repos/{full_name}/issues/{number}/comments"))
        return [item.get('body') or '' for item in items]

    def add_issue_comment(self, full_name: str, number: int, body: str) -> None:
        response = self.post(f"repos/{full_name}/issues/{number}/comments", json={'body': body})
        response.raise_for_status()

    # Non-GitHub hosts

    def fetch_url(self, url: str, timeout: int = 30) -> requests.Response:
        """GET an arbitrary public URL without GitHub credentials."""
        return request_with_rate_limit(self._public_session, 'GET', url, logger=self.logger,
                                       min_delay_sec=0, timeout=timeout)
