# twofactor/__init__.py

import logging

from flask import Flask, jsonify
from werkzeug.middleware.proxy_fix import ProxyFix

from twofactor.config import Config
from twofactor.extensions import db, jwt, limiter, migrate

__version__ = '1.0.0'


def _build_services(app):
    """Wire the two-factor engine from app config and stash it on app.extensions."""
    from twofactor.audit.audit_logger import AuditLogger
    from twofactor.audit.security_events import SecurityEventRecorder
    from twofactor.database.config_store import SQLAlchemyConfigStore
    from twofactor.encryption.secret_encryption import SecretEncryptionService
    from twofactor.flows import PendingEnrollmentStore, TwoFactorEnrollmentFlow, TwoFactorLoginFlow
    from twofactor.notifications import LoggingNotifier, WebhookNotifier
    from twofactor.otp import QrCodeRenderer, SecretProvisioner, TotpVerifier

    cfg = app.config
    if cfg['TWOFACTOR_NOTIFY_WEBHOOK_URL']:
        notifier = WebhookNotifier(cfg['TWOFACTOR_NOTIFY_WEBHOOK_URL'])
    else:
        notifier = LoggingNotifier()

    recorder = SecurityEventRecorder(AuditLogger(log_dir=cfg['AUDIT_LOG_DIR']), notifier)
    store = SQLAlchemyConfigStore(SecretEncryptionService(cfg['ENCRYPTION_MASTER_KEY']))
    verifier = TotpVerifier()
    provisioner = SecretProvisioner(
        issuer=cfg['TWOFACTOR_ISSUER'],
        secret_length=cfg['TWOFACTOR_SECRET_LENGTH'],
        qr_renderer=QrCodeRenderer(),
    )

    app.extensions['twofactor'] = {
        'recorder': recorder,
        'enrollment': TwoFactorEnrollmentFlow(
            store,
            provisioner=provisioner,
            verifier=verifier,
            pending=PendingEnrollmentStore(ttl_seconds=cfg['TWOFACTOR_PENDING_TTL_SECONDS']),
            recorder=recorder,
            window=cfg['TWOFACTOR_VERIFY_WINDOW'],
        ),
        'login': TwoFactorLoginFlow(
            store,
            verifier=verifier,
            recorder=recorder,
            window=cfg['TWOFACTOR_VERIFY_WINDOW'],
            replay_protection=cfg['TWOFACTOR_REPLAY_PROTECTION'],
        ),
    }


def create_app(config_object=Config, **overrides):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config.update(overrides)

    logging.basicConfig(
        level=logging.DEBUG if app.debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Fix proxy headers for HTTPS
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return jsonify({"msg": "Token has expired"}), 401

    # Ensure model modules are imported so SQLAlchemy metadata is populated
    from twofactor.database import models  # noqa: F401
    from twofactor.routes import two_factor_bp

    _build_services(app)
    app.register_blueprint(two_factor_bp)

    return app
