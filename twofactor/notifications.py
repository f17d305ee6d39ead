# twofactor/notifications.py

import logging

import requests

logger = logging.getLogger(__name__)

# Notification collaborators. Delivery is fire-and-forget: callers catch and
# log whatever notify() raises, so a failed notification never fails the
# enrollment or login operation that triggered it.


class LoggingNotifier:
    def notify(self, identity, title, message, metadata=None):
        logger.info("Security notification for %s: %s", identity, title)


class WebhookNotifier:
    def __init__(self, url, timeout=5, session=None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def notify(self, identity, title, message, metadata=None):
        payload = {
            'user_id': identity,
            'type': 'security',
            'title': title,
            'message': message,
            'metadata': metadata or {},
        }
        response = self.session.post(self.url, json=payload, timeout=self.timeout)
        response.raise_for_status()
