# twofactor/database/models.py

from datetime import datetime, timezone

from twofactor.extensions import db


def _utcnow():
    return datetime.now(timezone.utc)


class TwoFactorSetting(db.Model):
    __tablename__ = 'two_factor_settings'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    enabled = db.Column(db.Boolean, nullable=False, default=False)
    encrypted_secret = db.Column(db.Text, nullable=True)  # AES-GCM envelope, never the raw secret
    last_accepted_step = db.Column(db.BigInteger, nullable=True)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f'<TwoFactorSetting user={self.user_id} enabled={self.enabled}>'
