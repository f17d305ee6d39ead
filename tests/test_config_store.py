import asyncio

import pytest

from twofactor import create_app
from twofactor.config import TestingConfig
from twofactor.database.config_store import SQLAlchemyConfigStore, TwoFactorConfig
from twofactor.database.models import TwoFactorSetting
from twofactor.encryption.secret_encryption import SecretEncryptionService
from twofactor.extensions import db

SECRET = 'JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP'


@pytest.fixture
def app(tmp_path):
    app = create_app(TestingConfig, AUDIT_LOG_DIR=str(tmp_path / 'logs'))
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def store(app):
    return SQLAlchemyConfigStore(SecretEncryptionService(master_key='0' * 32))


def test_missing_identity_returns_none(store):
    assert asyncio.run(store.get_config('alice')) is None


def test_insert_then_read(store):
    asyncio.run(store.upsert_config('alice', TwoFactorConfig(enabled=True, secret=SECRET, last_accepted_step=7)))
    config = asyncio.run(store.get_config('alice'))
    assert config == TwoFactorConfig(enabled=True, secret=SECRET, last_accepted_step=7)


def test_secret_is_encrypted_at_rest(store):
    asyncio.run(store.upsert_config('alice', TwoFactorConfig(enabled=True, secret=SECRET)))
    row = db.session.query(TwoFactorSetting).filter_by(user_id='alice').one()
    assert row.encrypted_secret
    assert SECRET not in row.encrypted_secret


def test_upsert_updates_existing_row(store):
    asyncio.run(store.upsert_config('alice', TwoFactorConfig(enabled=True, secret=SECRET)))
    asyncio.run(store.upsert_config('alice', TwoFactorConfig.disabled()))

    assert db.session.query(TwoFactorSetting).filter_by(user_id='alice').count() == 1
    config = asyncio.run(store.get_config('alice'))
    assert config.enabled is False
    assert config.secret is None
    row = db.session.query(TwoFactorSetting).filter_by(user_id='alice').one()
    assert row.encrypted_secret is None


def test_advance_accepted_step_only_moves_forward(store):
    asyncio.run(store.upsert_config('alice', TwoFactorConfig(enabled=True, secret=SECRET)))
    assert asyncio.run(store.advance_accepted_step('alice', 100)) is True
    assert asyncio.run(store.advance_accepted_step('alice', 100)) is False
    assert asyncio.run(store.advance_accepted_step('alice', 99)) is False
    assert asyncio.run(store.advance_accepted_step('alice', 101)) is True
    assert asyncio.run(store.get_config('alice')).last_accepted_step == 101


def test_advance_accepted_step_ignores_disabled_rows(store):
    asyncio.run(store.upsert_config('alice', TwoFactorConfig.disabled()))
    assert asyncio.run(store.advance_accepted_step('alice', 5)) is False
    assert asyncio.run(store.advance_accepted_step('nobody', 5)) is False
