import pytest

from conftest import FakeResponse, make_repo
from telco_bot.checkers.dependency import GomockChecker
from telco_bot.checkers.go_version import GO_DOWNLOADS_URL, GoVersionChecker, fetch_stable_go_versions
from telco_bot.checkers.golangci_lint import (
    GolangciLintChecker, config_lint_version, makefile_lint_version, workflow_lint_version,
)
from telco_bot.checkers.ioutil import IoutilChecker
from telco_bot.checkers.ubi import UBIChecker
from telco_bot.checkers.xcrypto import (
    GO_PROXY_URL, XCRYPTO_MODULE, XCryptoChecker, fetch_latest_module_version, patched_version_floor,
)
from telco_bot.github.graphql_utils import GraphQLError, Vulnerability
from telco_bot.github.models import PullRequest
from telco_bot.pipeline import ReferenceDataError, ScanMode
from telco_bot.scanner import RemoteScanner

WORKFLOW = """
name: lint
on: [pull_request]
jobs:
  golangci:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v4
      - name: golangci-lint
        uses: golangci/golangci-lint-action@v6
        with:
          version: v1.55.2
          args: --timeout=5m
"""


# Go version

def test_go_version_checker_flags_unsupported_release():
    checker = GoVersionChecker(None, stable_versions=['1.23.4', '1.22.10'])
    repo = make_repo('openshift/operator')
    [finding] = checker.check(repo, 'module x\n\ngo 1.20\n')
    assert finding.metadata == {'current': '1.20', 'recommended': '1.22', 'latest': '1.23.4'}
    assert 'go 1.22' in checker.issue_body(repo, [finding])


def test_go_version_checker_accepts_supported_and_newer():
    checker = GoVersionChecker(None, stable_versions=['1.23.4', '1.22.10'])
    repo = make_repo('openshift/operator')
    assert checker.check(repo, 'module x\n\ngo 1.22.1\n') == []
    assert checker.check(repo, 'module x\n\ngo 1.24\n') == []
    assert checker.check(repo, 'module x\n') == []


def test_go_version_check_minor():
    checker = GoVersionChecker(None, check_minor=True, stable_versions=['1.23.4', '1.22.10'])
    [finding] = checker.check(make_repo('o/r'), 'go 1.22.1\n')
    assert finding.metadata['recommended'] == '1.22.10'


def test_fetch_stable_go_versions(client):
    client.urls[GO_DOWNLOADS_URL] = FakeResponse(200, text='<a>go1.23.4.src.tar.gz</a> Archived versions go1.19')
    assert fetch_stable_go_versions(client) == ['1.23.4']


def test_fetch_stable_go_versions_failure(client):
    with pytest.raises(ReferenceDataError):
        fetch_stable_go_versions(client)
    client.urls[GO_DOWNLOADS_URL] = FakeResponse(200, text='maintenance page')
    with pytest.raises(ReferenceDataError):
        fetch_stable_go_versions(client)


# golangci-lint

def test_workflow_lint_version():
    assert workflow_lint_version(WORKFLOW) == '1.55.2'
    assert workflow_lint_version(WORKFLOW.replace('          version: v1.55.2\n', '')) is None
    assert workflow_lint_version('jobs: {}') is None


def test_workflow_lint_version_survives_invalid_yaml():
    broken = WORKFLOW + "\n  : : [unbalanced\n"
    assert workflow_lint_version(broken) == '1.55.2'


@pytest.mark.parametrize('content, version, source', [
    ('GOLANGCI_LINT_VERSION ?= v1.54.0\n', '1.54.0', 'makefile'),
    ('GOLANGCI_LINT_VERSION=1.57\n', '1.57', 'makefile'),
    ('lint:\n\tgo install github.com/golangci/golangci-lint/cmd/golangci-lint@v1.50.1\n', '1.50.1', 'install'),
])
def test_makefile_lint_version(content, version, source):
    pinned = makefile_lint_version(content)
    assert (pinned.version, pinned.source) == (version, source)


def test_makefile_without_pin():
    assert makefile_lint_version('build:\n\tgo build ./...\n') is None


def test_config_lint_version():
    pinned = config_lint_version('run:\n  timeout: 5m\nversion: v1.54.2\n', '.golangci.yml')
    assert (pinned.version, pinned.path, pinned.source) == ('1.54.2', '.golangci.yml', 'config')
    # Config schema version, not a linter release
    assert config_lint_version('version: "2"\nlinters:\n  enable: [govet]\n', '.golangci.yml') is None


def test_golangci_detection_order(client):
    repo = make_repo('openshift-kni/lifecycle-agent')
    client.directories[(repo.full_name, '.github/workflows')] = ['ci.yaml', 'lint.yml', 'README.md']
    client.add_file(repo.full_name, '.github/workflows/ci.yaml', 'jobs:\n  build:\n    steps: []\n')
    client.add_file(repo.full_name, '.github/workflows/lint.yml', WORKFLOW)
    client.add_file(repo.full_name, 'Makefile', 'GOLANGCI_LINT_VERSION ?= v1.40.0\n')

    checker = GolangciLintChecker(client, latest='1.61.0')
    [finding] = checker.check(repo, None)

    assert finding.files == ['.github/workflows/lint.yml']
    assert finding.metadata == {'current': '1.55.2', 'latest': '1.61.0', 'source': 'workflow'}


def test_golangci_falls_back_to_makefile_and_accepts_latest(client):
    repo = make_repo('openshift-kni/tool')
    client.add_file(repo.full_name, 'Makefile', 'GOLANGCI_LINT_VERSION ?= v1.61.0\n')
    assert GolangciLintChecker(client, latest='1.61.0').check(repo, None) == []


def test_golangci_prepare_uses_latest_release(client):
    client.releases['golangci/golangci-lint'] = 'v1.62.2'
    checker = GolangciLintChecker(client)
    checker.prepare()
    assert checker.latest == '1.62.2'


def test_golangci_prepare_without_release(client):
    with pytest.raises(ReferenceDataError):
        GolangciLintChecker(client).prepare()


# UBI

def test_ubi_version_validation(client):
    with pytest.raises(ValueError):
        UBIChecker(client, 'rhel8')
    assert UBIChecker(client, 'UBI9').name == 'ubi-ubi9'


def test_ubi_checker_matches_target_release(client):
    repo = make_repo('redhatci/app')
    client.add_file(repo.full_name, 'Dockerfile',
                    'FROM registry.access.redhat.com/ubi8/go-toolset:1.21 AS build\n'
                    'FROM registry.access.redhat.com/ubi9/ubi-minimal:latest\n')
    client.add_file(repo.full_name, 'build/Dockerfile', 'FROM registry.access.redhat.com/ubi8:8.9\n')

    checker = UBIChecker(client, 'ubi8')
    [finding] = checker.check(repo, None)

    assert finding.files == ['Dockerfile', 'build/Dockerfile']
    assert finding.count == 2
    assert checker.other_versions['ubi9'] == 1


def test_ubi_checker_does_not_match_longer_release(client):
    repo = make_repo('redhatci/other')
    client.add_file(repo.full_name, 'Containerfile', 'FROM quay.io/org/ubi80-custom:1\n')
    assert UBIChecker(client, 'ubi8').check(repo, None) == []


# x/crypto and gomock

XCRYPTO_GO_MOD = 'module x\n\ngo 1.22\n\nrequire (\n\tgolang.org/x/crypto {version}\n)\n'


@pytest.mark.parametrize('version, severity, outdated', [
    ('v0.17.0', 'HIGH', 'true'),
    ('v0.28.0', 'MEDIUM', 'true'),
    ('v0.31.0', 'INFO', 'false'),
])
def test_xcrypto_severity(client, version, severity, outdated):
    checker = XCryptoChecker(client, latest='v0.31.0', advisory_floor='v0.17.1')
    [finding] = checker.check(make_repo('org/r'), XCRYPTO_GO_MOD.format(version=version))
    assert finding.severity == severity
    assert finding.metadata['outdated'] == outdated


def test_xcrypto_ignores_indirect(client):
    checker = XCryptoChecker(client, latest='v0.31.0', advisory_floor='')
    go_mod = 'module x\n\nrequire golang.org/x/crypto v0.1.0 // indirect\n'
    assert checker.check(make_repo('org/r'), go_mod) == []


def test_fetch_latest_module_version(client):
    client.urls[f"{GO_PROXY_URL}/golang.org/x/crypto/@latest"] = FakeResponse(200, json_data={'Version': 'v0.31.0'})
    assert fetch_latest_module_version(client, 'golang.org/x/crypto') == 'v0.31.0'
    with pytest.raises(ReferenceDataError):
        fetch_latest_module_version(client, 'example.com/missing')


class AdvisoryStub:
    def __init__(self, vulnerabilities=None, error=None):
        self.vulnerabilities = vulnerabilities or []
        self.error = error

    def list_security_vulnerabilities(self, package, ecosystem='GO'):
        if self.error is not None:
            raise self.error
        return self.vulnerabilities


def test_patched_version_floor_takes_highest_fix(client):
    client.graphql = AdvisoryStub([
        Vulnerability('GHSA-a', 'HIGH', '< 0.17.0', '0.17.0'),
        Vulnerability('GHSA-b', 'CRITICAL', '< 0.31.0', '0.31.0'),
        Vulnerability('GHSA-c', 'LOW', '< 0.1.0', None),
        Vulnerability('GHSA-d', 'LOW', 'garbage', 'not-a-version'),
    ])
    assert patched_version_floor(client, XCRYPTO_MODULE) == '0.31.0'


def test_patched_version_floor_is_optional(client):
    client.graphql = AdvisoryStub(error=GraphQLError('Bad credentials'))
    assert patched_version_floor(client, XCRYPTO_MODULE) is None
    client.graphql = AdvisoryStub()
    assert patched_version_floor(client, XCRYPTO_MODULE) is None


def test_gomock_links_open_pull_request(client):
    repo = make_repo('redhat-best-practices-for-k8s/certsuite')
    client.pulls[repo.full_name] = [
        PullRequest(10, 'Bump ginkgo', 'https://github.com/x/pull/10'),
        PullRequest(11, 'Migrate to go.uber.org/mock', 'https://github.com/x/pull/11'),
    ]
    go_mod = 'module x\n\nrequire github.com/golang/mock v1.6.0\n'
    [finding] = GomockChecker(client).check(repo, go_mod)
    assert finding.metadata == {'version': 'v1.6.0', 'pr': '11', 'pr_url': 'https://github.com/x/pull/11'}


def test_gomock_ignores_uber_fork(client):
    go_mod = 'module x\n\nrequire go.uber.org/mock v0.4.0\n'
    assert GomockChecker(client).check(make_repo('o/r'), go_mod) == []


# io/ioutil

def test_ioutil_checker_remote(client, no_wait_throttle):
    repo = make_repo('openshift/legacy')
    client.search_results[(repo.full_name, '"io/ioutil"')] = ['pkg/a.go', 'pkg/b_test.go']
    client.add_file(repo.full_name, 'pkg/a.go', 'import (\n\t"io/ioutil"\n)\n')
    client.add_file(repo.full_name, 'pkg/b_test.go', 'import "io/ioutil"\n')

    checker = IoutilChecker(client, mode=ScanMode.API, remote_scanner=RemoteScanner(client, no_wait_throttle))
    [finding] = checker.check(repo, None)

    assert finding.files == ['pkg/a.go']
    assert 'pr' not in finding.metadata
