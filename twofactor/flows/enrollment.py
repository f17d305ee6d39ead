# twofactor/flows/enrollment.py

import logging
from enum import Enum

from twofactor.audit import security_events as events
from twofactor.audit.security_events import SecurityEventRecorder
from twofactor.database.config_store import TwoFactorConfig
from twofactor.errors import NoEnrollmentInProgress
from twofactor.flows.pending import PendingEnrollmentStore
from twofactor.otp.provisioning import SecretProvisioner
from twofactor.otp.verifier import TotpVerifier

logger = logging.getLogger(__name__)

ENROLLMENT_WINDOW = 3


class EnrollmentState(Enum):
    IDLE = 'idle'
    AWAITING_VERIFICATION = 'awaiting_verification'
    CONFIRMED = 'confirmed'


class TwoFactorEnrollmentFlow:
    """Provision -> hold unconfirmed secret -> verify -> persist.

    The secret only reaches the config store once confirm() has matched a
    code. Until then it lives in the pending store, which is owned by this
    flow and never persisted.
    """

    def __init__(self, config_store, provisioner=None, verifier=None, pending=None,
                 recorder=None, window=ENROLLMENT_WINDOW):
        self.config_store = config_store
        self.provisioner = provisioner if provisioner is not None else SecretProvisioner()
        self.verifier = verifier if verifier is not None else TotpVerifier()
        self.pending = pending if pending is not None else PendingEnrollmentStore()
        self.recorder = recorder if recorder is not None else SecurityEventRecorder()
        self.window = window

    async def state(self, identity, session_id=None) -> EnrollmentState:
        if self.pending.get(identity, session_id) is not None:
            return EnrollmentState.AWAITING_VERIFICATION
        # CONFIRMED tracks the stored config, not this process
        config = await self.config_store.get_config(identity)
        if config is not None and config.enabled:
            return EnrollmentState.CONFIRMED
        return EnrollmentState.IDLE

    async def start(self, identity, account_label=None, session_id=None):
        """Provision a fresh secret and hold it until confirmed or cancelled."""
        result = self.provisioner.provision(account_label or str(identity))
        self.pending.put(identity, result.secret, session_id=session_id)
        await self.recorder.record(events.SETUP_STARTED, identity)
        return result

    async def confirm(self, identity, candidate_code, session_id=None) -> bool:
        pending = self.pending.get(identity, session_id)
        if pending is None:
            raise NoEnrollmentInProgress(f"No two-factor enrollment in progress for {identity}")

        step = self.verifier.match_step(pending.secret, candidate_code, self.window)
        if step is None:
            await self.recorder.record(events.SETUP_FAILED, identity, status='blocked')
            return False

        config = TwoFactorConfig(enabled=True, secret=pending.secret, last_accepted_step=step)
        await self.config_store.upsert_config(identity, config)
        self.pending.discard(identity, pending.secret)

        await self.recorder.record(events.ENABLED, identity)
        await self.recorder.notify(
            identity,
            'Two-Factor Authentication Enabled',
            'Two-factor authentication has been successfully enabled for your account.',
            {'feature': '2FA'},
        )
        return True

    async def cancel(self, identity, session_id=None) -> None:
        pending = self.pending.get(identity, session_id)
        if pending is None:
            raise NoEnrollmentInProgress(f"No two-factor enrollment in progress for {identity}")
        self.pending.discard(identity, pending.secret)
        await self.recorder.record(events.SETUP_CANCELLED, identity)

    def end_session(self, session_id) -> int:
        """Discard every pending enrollment started by session_id."""
        dropped = self.pending.discard_session(session_id)
        if dropped:
            logger.info("Discarded %d pending enrollment(s) at session end", dropped)
        return dropped
