import asyncio

import pytest
import requests

from twofactor.audit.security_events import SecurityEventRecorder
from twofactor.notifications import LoggingNotifier, WebhookNotifier


class FakeResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    def __init__(self, status_code=200):
        self.calls = []
        self.status_code = status_code

    def post(self, url, json=None, timeout=None):
        self.calls.append((url, json, timeout))
        return FakeResponse(self.status_code)


def test_webhook_notifier_posts_payload():
    session = FakeSession()
    notifier = WebhookNotifier('https://notify.example.com/hook', timeout=3, session=session)
    notifier.notify('alice', 'Two-Factor Authentication Enabled', 'enabled', {'feature': '2FA'})

    url, payload, timeout = session.calls[0]
    assert url == 'https://notify.example.com/hook'
    assert timeout == 3
    assert payload == {
        'user_id': 'alice',
        'type': 'security',
        'title': 'Two-Factor Authentication Enabled',
        'message': 'enabled',
        'metadata': {'feature': '2FA'},
    }


def test_webhook_notifier_raises_on_http_error():
    notifier = WebhookNotifier('https://notify.example.com/hook', session=FakeSession(status_code=500))
    with pytest.raises(requests.HTTPError):
        notifier.notify('alice', 'title', 'message')


def test_recorder_swallows_notifier_errors(caplog):
    notifier = WebhookNotifier('https://notify.example.com/hook', session=FakeSession(status_code=503))
    recorder = SecurityEventRecorder(notifier=notifier)
    with caplog.at_level('WARNING', logger='twofactor.audit.security_events'):
        asyncio.run(recorder.notify('alice', 'title', 'message'))
        assert recorder.flush(timeout=5) is True
    assert 'Failed to deliver notification' in caplog.text


def test_logging_notifier(caplog):
    with caplog.at_level('INFO', logger='twofactor.notifications'):
        LoggingNotifier().notify('alice', 'Two-Factor Authentication Disabled', 'disabled')
    assert 'Two-Factor Authentication Disabled' in caplog.text


def test_recorder_alerts_only_for_risky_statuses():
    sent = []

    class Recorder:
        def notify(self, identity, title, message, metadata=None):
            sent.append((title, metadata['status']))

    recorder = SecurityEventRecorder(notifier=Recorder())
    asyncio.run(recorder.record('two_factor_login_succeeded', 'alice'))
    asyncio.run(recorder.record('two_factor_login_failed', 'alice', status='blocked'))
    asyncio.run(recorder.record('two_factor_disabled', 'alice', status='warning'))
    recorder.flush()
    assert sorted(sent) == [('Security Alert', 'blocked'), ('Security Alert', 'warning')]
