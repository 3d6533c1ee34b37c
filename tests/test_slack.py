import pytest
import requests

from telco_bot.slack import SlackNotifier, build_xcrypto_message

WEBHOOK = 'https://hooks.slack.com/workflows/T000/B000/xyz'


class RecordingSession:
    def __init__(self, status_code=200, error=None):
        self.status_code = status_code
        self.error = error
        self.posts = []

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json))
        if self.error is not None:
            raise self.error
        response = requests.Response()
        response.status_code = self.status_code
        response._content = b'ok' if self.status_code == 200 else b'invalid_payload'
        return response


def test_webhook_url_is_required():
    with pytest.raises(ValueError):
        SlackNotifier('')


def test_post_uses_configured_field():
    session = RecordingSession()
    assert SlackNotifier(WEBHOOK, field='text', session=session).post('hello')
    assert session.posts == [(WEBHOOK, {'text': 'hello'})]


def test_post_reports_http_errors():
    assert not SlackNotifier(WEBHOOK, session=RecordingSession(status_code=400)).post('hello')


def test_post_reports_connection_errors():
    session = RecordingSession(error=requests.ConnectionError('refused'))
    assert not SlackNotifier(WEBHOOK, session=session).post('hello')


@pytest.mark.parametrize('outdated, emoji', [
    (0, ':white_check_mark:'),
    (4, ':warning:'),
    (5, ':rotating_light:'),
])
def test_xcrypto_message_tone(outdated, emoji):
    message = build_xcrypto_message(120, 3, 17, outdated, 'v0.31.0')
    assert message.startswith(emoji)
    assert 'Scanned 120 repositories across 3 organizations; 17 depend' in message
    assert 'Latest release: v0.31.0' in message
    assert 'Details:' not in message


def test_xcrypto_message_links_tracking_issue():
    url = 'https://github.com/redhat-best-practices-for-k8s/telco-bot/issues/42'
    message = build_xcrypto_message(1, 1, 1, 1, None, tracking_url=url)
    assert message.splitlines()[-1] == f'Details: {url}'
    assert 'Latest release' not in message
