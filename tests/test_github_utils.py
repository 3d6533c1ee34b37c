import pytest
import requests

from telco_bot.github import rate_limit
from telco_bot.github.rate_limit import SearchThrottle, _compute_rate_limit_sleep, request_with_rate_limit
from telco_bot.github.utils import normalize_repo_name, read_repo_list


@pytest.mark.parametrize('value, expected', [
    ('openshift/origin', 'openshift/origin'),
    ('https://github.com/openshift/origin', 'openshift/origin'),
    ('github.com/openshift/origin.git', 'openshift/origin'),
    ('  https://www.github.com/openshift/origin/  ', 'openshift/origin'),
    ('openshift', None),
    ('https://github.com/openshift/origin/tree/main', None),
])
def test_normalize_repo_name(value, expected):
    assert normalize_repo_name(value) == expected


def test_read_repo_list(tmp_path):
    path = tmp_path / 'repos.txt'
    path.write_text(
        "# extra repositories\n"
        "\n"
        "https://github.com/someone/tool\n"
        "// disabled: other/thing\n"
        "someone/tool\n"
        "not a repo\n"
        "k8snetworkplumbingwg/sriov-network-operator\n"
    )
    assert read_repo_list(str(path)) == ['someone/tool', 'k8snetworkplumbingwg/sriov-network-operator']


def test_missing_repo_list_is_empty(tmp_path):
    assert read_repo_list(str(tmp_path / 'absent.txt')) == []


def _response(status, headers=None):
    response = requests.Response()
    response.status_code = status
    response.headers.update(headers or {})
    return response


def test_rate_limit_sleep_until_reset(monkeypatch):
    monkeypatch.setattr(rate_limit.time, 'time', lambda: 1000.0)
    exhausted = _response(403, {'X-RateLimit-Remaining': '0', 'X-RateLimit-Reset': '1010'})
    assert _compute_rate_limit_sleep(exhausted) == 12.0
    assert _compute_rate_limit_sleep(_response(403, {'X-RateLimit-Remaining': '5'})) is None
    assert _compute_rate_limit_sleep(_response(200)) is None


class ScriptedSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = 0

    def request(self, method, url, **kwargs):
        self.requests += 1
        return self.responses.pop(0)


def test_request_retries_transient_errors(monkeypatch):
    sleeps = []
    monkeypatch.setattr(rate_limit.time, 'sleep', sleeps.append)
    session = ScriptedSession([_response(502), _response(200)])

    response = request_with_rate_limit(session, 'GET', 'https://api.github.com/x', min_delay_sec=0)

    assert response.status_code == 200
    assert session.requests == 2
    assert sleeps == [1.0]


def test_request_gives_up_after_max_attempts(monkeypatch):
    monkeypatch.setattr(rate_limit.time, 'sleep', lambda _: None)
    session = ScriptedSession([_response(503)] * 3)
    response = request_with_rate_limit(session, 'GET', 'https://api.github.com/x', min_delay_sec=0, max_attempts=3)
    assert response.status_code == 503


def test_search_throttle_spaces_calls():
    now = [100.0]
    slept = []

    def sleep(seconds):
        slept.append(seconds)
        now[0] += seconds

    throttle = SearchThrottle(interval_sec=7.0, clock=lambda: now[0], sleep=sleep)
    throttle.wait()
    now[0] += 2.0
    throttle.wait()
    now[0] += 10.0
    throttle.wait()

    assert slept == [5.0]


def test_secondary_rate_limit_honors_retry_after(monkeypatch):
    sleeps = []
    monkeypatch.setattr(rate_limit.time, 'sleep', sleeps.append)
    assert _compute_rate_limit_sleep(_response(429, {'Retry-After': '30'})) == 30.0

    session = ScriptedSession([_response(403, {'Retry-After': '60'}), _response(200)])
    response = request_with_rate_limit(session, 'GET', 'https://api.github.com/search/code',
                                       min_delay_sec=0, max_attempts=1)

    assert response.status_code == 200
    assert sleeps == [60.0]
