"""GitHub API access for the scanners.

Example usage:
    ```python
    from telco_bot.github import GitHubClient

    with GitHubClient(token="your_github_token") as client:
        repos = client.list_organization_repositories("openshift")
        go_mod = client.fetch_raw_file(repos[0].full_name, repos[0].default_branch, "go.mod")
    ```
"""
from .client import BaseGitHubClient, GitHubClient
from .graphql_utils import GraphQLClient, GraphQLError, Vulnerability
from .models import Issue, IssueState, PullRequest, Repository
from .rate_limit import SearchThrottle, make_rate_limited_session, request_with_rate_limit
from .utils import normalize_repo_name, paginate, read_repo_list

__all__ = [
    'BaseGitHubClient',
    'GitHubClient',
    'GraphQLClient',
    'GraphQLError',
    'Issue',
    'IssueState',
    'PullRequest',
    'Repository',
    'SearchThrottle',
    'Vulnerability',
    'make_rate_limited_session',
    'request_with_rate_limit',
    'normalize_repo_name',
    'paginate',
    'read_repo_list',
]
