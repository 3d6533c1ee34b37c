import pytest
import requests

from telco_bot.github import rate_limit
from telco_bot.github.client import GitHubClient
from telco_bot.github.graphql_utils import GraphQLClient, GraphQLError


def _response(status, payload=None, text='', headers=None):
    response = requests.Response()
    response.status_code = status
    response.headers.update(headers or {})
    if payload is not None:
        response.json = lambda: payload
    response._content = text.encode()
    response.encoding = 'utf-8'
    return response


class RoutedSession:
    """Answers by URL; records every request."""

    def __init__(self, routes):
        self.routes = routes
        self.seen = []

    def request(self, method, url, params=None, **kwargs):
        page = (params or {}).get('page', 1)
        self.seen.append((method, url, page))
        answer = self.routes.get((url, page), self.routes.get(url))
        return answer if answer is not None else _response(404, {})

    def get(self, url, timeout=None):
        return self.request('GET', url)

    def close(self):
        pass


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(rate_limit.time, 'sleep', lambda _: None)


def _client(routes):
    client = GitHubClient(token='ghp_test')
    client._session = RoutedSession(routes)
    return client


API = 'https://api.github.com'


def test_list_organization_repositories_paginates_and_drops_archived():
    def repo(name, archived=False, fork=False):
        return {'name': name, 'full_name': f'openshift/{name}', 'archived': archived, 'fork': fork,
                'default_branch': 'master', 'language': 'Go'}

    client = _client({
        (f'{API}/orgs/openshift/repos', 1): _response(200, [repo('a'), repo('b', archived=True)],
                                                       headers={'Link': '<...page=2>; rel="next"'}),
        (f'{API}/orgs/openshift/repos', 2): _response(200, [repo('c', fork=True)]),
    })

    repos = client.list_organization_repositories('openshift')

    assert [r.full_name for r in repos] == ['openshift/a', 'openshift/c']
    assert repos[1].is_fork
    assert repos[0].default_branch == 'master'


def test_unknown_org_falls_back_to_user_repositories():
    client = _client({f'{API}/users/someone/repos': _response(200, [{'name': 'x', 'full_name': 'someone/x'}])})
    assert [r.full_name for r in client.list_organization_repositories('someone')] == ['someone/x']


def test_fetch_raw_file_caches_hits_and_reports_missing_files():
    url = 'https://raw.githubusercontent.com/openshift/api/master/go.mod'
    client = _client({url: _response(200, text='module github.com/openshift/api\n')})

    assert client.fetch_raw_file('openshift/api', 'master', 'go.mod') == 'module github.com/openshift/api\n'
    assert client.fetch_raw_file('openshift/api', 'master', 'go.mod').startswith('module')
    assert len(client._session.seen) == 1
    assert client.fetch_raw_file('openshift/api', 'master', 'Makefile', attempts=2) is None


def test_last_commit_date():
    client = _client({
        f'{API}/repos/openshift/api/commits/master':
            _response(200, {'commit': {'committer': {'date': '2025-05-30T10:00:00Z'}}}),
    })
    assert client.get_last_commit_date('openshift/api', 'master').year == 2025
    assert client.get_last_commit_date('openshift/gone', 'main') is None


def test_search_code_scopes_query_and_swallows_failures():
    client = _client({
        f'{API}/search/code': _response(200, {'items': [{'path': 'b.go'}, {'path': 'a.go'}, {'path': 'a.go'}]}),
    })
    assert client.search_code('"io/ioutil"', 'openshift/api', 'go') == ['a.go', 'b.go']

    failing = _client({f'{API}/search/code': _response(422, {})})
    assert failing.search_code('x', 'openshift/api') == []


def test_search_issues_requires_exact_title():
    client = _client({
        f'{API}/search/issues': _response(200, {'items': [
            {'number': 3, 'title': 'Outdated Go version in go.mod', 'state': 'open'},
            {'number': 4, 'title': 'Outdated Go version in go.mod (fork)', 'state': 'closed'},
        ]}),
    })
    issues = client.search_issues_by_title('openshift/api', 'Outdated Go version in go.mod')
    assert [i.number for i in issues] == [3]


def test_missing_release_is_none():
    assert _client({}).get_latest_release_tag('golangci/golangci-lint') is None


class GraphQLSession:
    def __init__(self, pages):
        self.pages = list(pages)
        self.payloads = []

    def post(self, url, json=None, timeout=None):
        self.payloads.append(json)
        return _response(200, self.pages.pop(0))


def _page(nodes, cursor=None):
    return {'data': {'securityVulnerabilities': {
        'pageInfo': {'hasNextPage': cursor is not None, 'endCursor': cursor},
        'nodes': nodes,
    }}}


def test_security_vulnerabilities_follow_pages():
    session = GraphQLSession([
        _page([{'severity': 'HIGH', 'vulnerableVersionRange': '< 0.17.0',
                'firstPatchedVersion': {'identifier': '0.17.0'}, 'advisory': {'ghsaId': 'GHSA-1'}}], cursor='c1'),
        _page([{'severity': 'MODERATE', 'vulnerableVersionRange': '<= 0.0.1',
                'firstPatchedVersion': None, 'advisory': {'ghsaId': 'GHSA-2'}}]),
    ])
    client = GraphQLClient('ghp_test', session=session)

    found = client.list_security_vulnerabilities('golang.org/x/crypto')

    assert [(v.ghsa_id, v.first_patched) for v in found] == [('GHSA-1', '0.17.0'), ('GHSA-2', None)]
    assert session.payloads[1]['variables']['cursor'] == 'c1'


def test_graphql_errors_raise():
    client = GraphQLClient('ghp_test', session=GraphQLSession([{'errors': [{'message': 'Bad credentials'}]}]))
    with pytest.raises(GraphQLError, match='Bad credentials'):
        client.execute_query('query { viewer { login } }')


def test_fetch_url_uses_anonymous_session():
    url = 'https://proxy.golang.org/golang.org/x/crypto/@latest'
    client = _client({})
    client._public_session = RoutedSession({url: _response(200, {'Version': 'v0.31.0'})})

    assert client.fetch_url(url).json() == {'Version': 'v0.31.0'}
    assert client._session.seen == []
    assert client._public_session.seen == [('GET', url, 1)]
