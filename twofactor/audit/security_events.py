# twofactor/audit/security_events.py

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait

logger = logging.getLogger(__name__)

# Event names recorded by the enrollment and login flows
SETUP_STARTED = 'two_factor_setup_started'
SETUP_CANCELLED = 'two_factor_setup_cancelled'
SETUP_FAILED = 'two_factor_setup_failed'
ENABLED = 'two_factor_enabled'
LOGIN_SUCCEEDED = 'two_factor_login_succeeded'
LOGIN_FAILED = 'two_factor_login_failed'
LOGIN_REPLAY_REJECTED = 'two_factor_login_replay_rejected'
DISABLED = 'two_factor_disabled'

ALERT_STATUSES = ('warning', 'blocked')

EVENT_TITLES = {
    SETUP_STARTED: 'Two-Factor Authentication Setup Started',
    SETUP_CANCELLED: 'Two-Factor Authentication Setup Cancelled',
    SETUP_FAILED: 'Failed 2FA Setup Verification',
    ENABLED: 'Two-Factor Authentication Enabled',
    LOGIN_SUCCEEDED: 'Successful 2FA Login',
    LOGIN_FAILED: 'Failed 2FA Verification',
    LOGIN_REPLAY_REJECTED: 'Reused 2FA Code Rejected',
    DISABLED: 'Two-Factor Authentication Disabled',
}


class SecurityEventRecorder:
    """Writes 2FA events to the audit log and raises alerts for risky ones.

    Events with a warning/blocked status also produce a "Security Alert"
    notification. Both sinks are optional and neither may fail the caller.
    Notifications are handed to a worker pool and never awaited; flush()
    blocks until the ones already submitted have been delivered.
    """

    def __init__(self, audit_logger=None, notifier=None, executor=None):
        self.audit_logger = audit_logger
        self.notifier = notifier
        self._executor = executor if executor is not None else ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="twofactor-notify")
        self._in_flight = set()
        self._lock = threading.Lock()

    async def record(self, event_type, identity, status='success', **data):
        logger.info("2FA event %s for %s (%s)", event_type, identity, status)
        if self.audit_logger is not None:
            self.audit_logger.log_security_event(event_type, data, user_id=identity, status=status)
        if status in ALERT_STATUSES:
            title = EVENT_TITLES.get(event_type, event_type)
            await self.notify(identity, 'Security Alert', f'{title} detected on your account.',
                              {'event_type': event_type, 'status': status})

    async def notify(self, identity, title, message, metadata=None):
        """Schedule delivery and return without waiting for it."""
        if self.notifier is None:
            return None
        future = self._executor.submit(self._deliver, identity, title, message, metadata or {})
        with self._lock:
            self._in_flight.add(future)
        future.add_done_callback(self._forget)
        return future

    def _deliver(self, identity, title, message, metadata):
        try:
            self.notifier.notify(identity, title, message, metadata)
        except Exception:
            logger.warning("Failed to deliver notification %r for %s", title, identity, exc_info=True)

    def _forget(self, future):
        with self._lock:
            self._in_flight.discard(future)

    def flush(self, timeout=None) -> bool:
        """Wait for submitted notifications. Returns False if any are still running."""
        with self._lock:
            futures = list(self._in_flight)
        _, not_done = wait(futures, timeout=timeout)
        return not not_done
