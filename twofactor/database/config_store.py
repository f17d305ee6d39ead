# twofactor/database/config_store.py

import threading
from dataclasses import dataclass, field, replace
from typing import Dict, Optional

from twofactor.database.models import TwoFactorSetting
from twofactor.extensions import db


@dataclass(frozen=True)
class TwoFactorConfig:
    enabled: bool = False
    secret: Optional[str] = field(default=None, repr=False)
    last_accepted_step: Optional[int] = None

    def __post_init__(self):
        if self.enabled and not self.secret:
            raise ValueError("An enabled two-factor config requires a secret")

    @classmethod
    def disabled(cls):
        return cls(enabled=False, secret=None, last_accepted_step=None)

    def with_accepted_step(self, step):
        return replace(self, last_accepted_step=step)


class InMemoryConfigStore:
    """Config store keyed by identity, for tests and single-process use."""

    def __init__(self):
        self._configs: Dict[str, TwoFactorConfig] = {}
        self._lock = threading.Lock()

    async def get_config(self, identity) -> Optional[TwoFactorConfig]:
        with self._lock:
            return self._configs.get(identity)

    async def upsert_config(self, identity, config: TwoFactorConfig) -> None:
        with self._lock:
            self._configs[identity] = config

    async def advance_accepted_step(self, identity, step) -> bool:
        """Move the replay mark to step if it is newer. Atomic under the store lock."""
        with self._lock:
            config = self._configs.get(identity)
            if config is None or not config.enabled:
                return False
            if config.last_accepted_step is not None and step <= config.last_accepted_step:
                return False
            self._configs[identity] = config.with_accepted_step(step)
            return True

    def __contains__(self, identity):
        with self._lock:
            return identity in self._configs


class SQLAlchemyConfigStore:
    """Config store backed by the two_factor_settings table.

    Secrets are encrypted with the identity bound as associated data before
    they are written. Must be used inside a Flask application context.
    Database errors propagate unchanged.
    """

    def __init__(self, encryption_service):
        self.encryption_service = encryption_service

    async def get_config(self, identity) -> Optional[TwoFactorConfig]:
        row = db.session.query(TwoFactorSetting).filter_by(user_id=str(identity)).first()
        if row is None:
            return None
        secret = None
        if row.encrypted_secret:
            secret = self.encryption_service.decrypt_secret(row.encrypted_secret, str(identity))
        return TwoFactorConfig(
            enabled=bool(row.enabled) and secret is not None,
            secret=secret,
            last_accepted_step=row.last_accepted_step,
        )

    async def upsert_config(self, identity, config: TwoFactorConfig) -> None:
        row = db.session.query(TwoFactorSetting).filter_by(user_id=str(identity)).first()
        if row is None:
            row = TwoFactorSetting(user_id=str(identity))
            db.session.add(row)
        row.enabled = config.enabled
        row.encrypted_secret = (
            self.encryption_service.encrypt_secret(config.secret, str(identity))
            if config.secret else None
        )
        row.last_accepted_step = config.last_accepted_step
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    async def advance_accepted_step(self, identity, step) -> bool:
        """Conditional UPDATE so concurrent logins with the same code cannot both win."""
        newer = db.or_(TwoFactorSetting.last_accepted_step.is_(None),
                       TwoFactorSetting.last_accepted_step < step)
        try:
            updated = (
                db.session.query(TwoFactorSetting)
                .filter(TwoFactorSetting.user_id == str(identity),
                        TwoFactorSetting.enabled.is_(True),
                        newer)
                .update({TwoFactorSetting.last_accepted_step: step}, synchronize_session=False)
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return updated == 1
