# twofactor/flows/login.py

from twofactor.audit import security_events as events
from twofactor.audit.security_events import SecurityEventRecorder
from twofactor.database.config_store import TwoFactorConfig
from twofactor.errors import TwoFactorNotEnabled
from twofactor.otp.verifier import TotpVerifier

LOGIN_WINDOW = 3


class TwoFactorLoginFlow:
    """Login-time code verification against the confirmed secret.

    With replay_protection on, the last accepted time step is stored per
    identity and any code whose step is not newer than it is rejected.
    """

    def __init__(self, config_store, verifier=None, recorder=None,
                 window=LOGIN_WINDOW, replay_protection=True):
        self.config_store = config_store
        self.verifier = verifier if verifier is not None else TotpVerifier()
        self.recorder = recorder if recorder is not None else SecurityEventRecorder()
        self.window = window
        self.replay_protection = replay_protection

    async def _enabled_config(self, identity) -> TwoFactorConfig:
        config = await self.config_store.get_config(identity)
        if config is None or not config.enabled or not config.secret:
            raise TwoFactorNotEnabled(f"Two-factor authentication is not enabled for {identity}")
        return config

    async def is_enabled(self, identity) -> bool:
        config = await self.config_store.get_config(identity)
        return bool(config and config.enabled and config.secret)

    async def verify_login(self, identity, candidate_code) -> bool:
        config = await self._enabled_config(identity)

        step = self.verifier.match_step(config.secret, candidate_code, self.window)
        if step is None:
            await self.recorder.record(events.LOGIN_FAILED, identity, status='blocked')
            return False

        # the store moves the mark only if step is newer, in one atomic write
        if self.replay_protection and not await self.config_store.advance_accepted_step(identity, step):
            await self.recorder.record(events.LOGIN_REPLAY_REJECTED, identity, status='blocked', step=step)
            return False

        await self.recorder.record(events.LOGIN_SUCCEEDED, identity, step=step)
        return True

    async def disable(self, identity) -> bool:
        """Clear the secret and turn 2FA off. Returns False if it was already off."""
        config = await self.config_store.get_config(identity)
        was_enabled = bool(config and config.enabled)

        await self.config_store.upsert_config(identity, TwoFactorConfig.disabled())
        if not was_enabled:
            return False

        await self.recorder.record(events.DISABLED, identity, status='warning')
        await self.recorder.notify(
            identity,
            'Two-Factor Authentication Disabled',
            'Two-factor authentication has been disabled. Your account security may be reduced.',
            {'feature': '2FA'},
        )
        return True
