from datetime import timedelta

import pytest

from conftest import NOW, make_repo
from telco_bot.caches import ClassificationCache, ClassificationKind
from telco_bot.downstream import classify_downstream, find_downstream, render_downstream_report
from telco_bot.issues import IssueAction, IssueIndex, IssueLifecycleManager
from telco_bot.maintenance import classify_organizations, close_stale_issues, write_caches

TITLE = 'Outdated Go version in go.mod'


@pytest.fixture
def orgs(client):
    client.add_repo('openshift', make_repo('openshift/fork', fork=True))
    client.add_repo('openshift', make_repo('openshift/stale'), last_commit=NOW - timedelta(days=365))
    client.add_repo('openshift', make_repo('openshift/docs'))
    client.add_repo('openshift', make_repo('openshift/api'))
    client.add_file('openshift/stale', 'go.mod', 'module s\n')
    client.add_file('openshift/api', 'go.mod', 'module a\n')
    return client


def test_classify_organizations(orgs):
    refresh = classify_organizations(orgs, ['openshift'], inactivity_days=180, now=NOW)

    assert refresh.classified[ClassificationKind.FORK] == {'openshift/fork'}
    assert refresh.classified[ClassificationKind.ABANDONED] == {'openshift/stale'}
    assert refresh.classified[ClassificationKind.NO_MANIFEST] == {'openshift/docs'}
    assert refresh.active == {'openshift/api'}
    assert ('last_commit', 'openshift/fork') not in orgs.calls


def test_classify_without_manifest_requirement(orgs):
    refresh = classify_organizations(orgs, ['openshift'], inactivity_days=180, manifest_path=None, now=NOW)
    assert refresh.count(ClassificationKind.NO_MANIFEST) == 0
    assert refresh.active == {'openshift/docs', 'openshift/api'}


def test_write_caches_replaces_entries(orgs, tmp_path):
    cache = ClassificationCache(str(tmp_path))
    cache.record_classification('openshift/revived', ClassificationKind.ABANDONED)

    write_caches(cache, classify_organizations(orgs, ['openshift'], 180, now=NOW))

    assert cache.entries(ClassificationKind.ABANDONED) == ['openshift/stale']
    assert (tmp_path / 'forks.txt').read_text() == 'openshift/fork\n'


def test_write_caches_merge_keeps_existing(orgs, tmp_path):
    cache = ClassificationCache(str(tmp_path))
    cache.record_classification('openshift-kni/old', ClassificationKind.ABANDONED)

    write_caches(cache, classify_organizations(orgs, ['openshift'], 180, now=NOW), merge=True)

    assert cache.entries(ClassificationKind.ABANDONED) == ['openshift-kni/old', 'openshift/stale']


def test_failed_org_keeps_previous_entries(orgs, tmp_path):
    orgs.failing_orgs.add('redhatci')
    cache = ClassificationCache(str(tmp_path))
    cache.record_classification('redhatci/legacy', ClassificationKind.FORK)
    cache.record_classification('openshift/gone', ClassificationKind.FORK)

    refresh = classify_organizations(orgs, ['redhatci', 'openshift'], 180, now=NOW)
    write_caches(cache, refresh)

    assert refresh.failed_orgs == ['redhatci']
    assert cache.entries(ClassificationKind.FORK) == ['openshift/fork', 'redhatci/legacy']


def test_close_stale_issues(client, tmp_path):
    client.add_issue('openshift/fork', 1, TITLE)
    manager = IssueLifecycleManager(client, IssueIndex(str(tmp_path / 'issues.json')))

    results = close_stale_issues(manager, ['openshift/fork', 'openshift/stale'], [TITLE])

    assert [r.action for r in results] == [IssueAction.CLOSE, IssueAction.NOOP]
    assert not client.issues['openshift/fork'][1].is_open


def test_close_stale_issues_continues_after_errors(client, tmp_path):
    client.add_issue('openshift/a', 1, TITLE)
    client.add_issue('openshift/b', 1, TITLE)
    client.fail_issue_writes = True
    manager = IssueLifecycleManager(client, IssueIndex(str(tmp_path / 'issues.json')))

    assert close_stale_issues(manager, ['openshift/a', 'openshift/b'], [TITLE]) == []
    assert client.count('search_issues') == 2


# Downstream detection

def test_classify_downstream_reasons():
    fork = make_repo('openshift/prometheus-fork', fork=True)
    fork.parent_full_name = 'prometheus/prometheus'
    assert classify_downstream(fork).upstream == 'prometheus/prometheus'
    assert classify_downstream(make_repo('openshift/thanos')).upstream == 'thanos'
    described = make_repo('openshift/widget', description='Downstream build of widget')
    assert classify_downstream(described).reason == 'description mentions downstream'
    assert classify_downstream(make_repo('openshift/installer')) is None


def test_find_downstream_respects_limit():
    repos = [make_repo(f'openshift/etcd-{i}') for i in range(5)] + [make_repo('openshift/api')]
    assert len(find_downstream(repos, limit=2)) == 2
    assert len(find_downstream(repos)) == 5


def test_render_downstream_report():
    candidates = find_downstream([make_repo('openshift/coredns', description='a | b')])
    text = render_downstream_report('openshift', candidates)
    assert text.startswith('# Downstream Repositories in openshift\n')
    assert '**Candidates found:** 1' in text
    assert '| [`openshift/coredns`](https://github.com/openshift/coredns) | name matches upstream project | coredns | a \\| b |' in text
