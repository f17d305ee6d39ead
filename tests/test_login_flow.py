import asyncio

import pytest

from twofactor.audit.security_events import SecurityEventRecorder
from twofactor.database.config_store import InMemoryConfigStore, TwoFactorConfig
from twofactor.errors import TwoFactorNotEnabled
from twofactor.flows.enrollment import EnrollmentState, TwoFactorEnrollmentFlow
from twofactor.flows.login import TwoFactorLoginFlow
from twofactor.flows.pending import PendingEnrollmentStore
from twofactor.otp.generator import TotpCodeGenerator
from twofactor.otp.verifier import TotpVerifier

TEST_SECRET = 'JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP'


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordingNotifier:
    def __init__(self):
        self.titles = []

    def notify(self, identity, title, message, metadata=None):
        self.titles.append(title)


@pytest.fixture
def clock():
    return FakeClock(1_700_000_000)


@pytest.fixture
def generator(clock):
    return TotpCodeGenerator(clock=clock)


@pytest.fixture
def store():
    return InMemoryConfigStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def recorder(notifier):
    return SecurityEventRecorder(notifier=notifier)


@pytest.fixture
def login(store, generator, recorder):
    return TwoFactorLoginFlow(store, verifier=TotpVerifier(generator), recorder=recorder)


@pytest.fixture
def enabled_alice(store):
    asyncio.run(store.upsert_config('alice', TwoFactorConfig(enabled=True, secret=TEST_SECRET)))


def test_valid_code_passes(login, generator, enabled_alice):
    assert asyncio.run(login.verify_login('alice', generator.generate(TEST_SECRET))) is True


def test_wrong_code_fails(login, recorder, enabled_alice, notifier):
    assert asyncio.run(login.verify_login('alice', 'abcdef')) is False
    recorder.flush()
    assert 'Security Alert' in notifier.titles


def test_code_within_window_passes(login, generator, enabled_alice):
    code = generator.generate(TEST_SECRET, generator.current_step() - 3)
    assert asyncio.run(login.verify_login('alice', code)) is True


def test_unknown_identity_raises(login):
    with pytest.raises(TwoFactorNotEnabled):
        asyncio.run(login.verify_login('nobody', '123456'))


def test_replayed_code_is_rejected(login, store, generator, clock, enabled_alice):
    code = generator.generate(TEST_SECRET)
    assert asyncio.run(login.verify_login('alice', code)) is True
    assert asyncio.run(store.get_config('alice')).last_accepted_step == generator.current_step()
    assert asyncio.run(login.verify_login('alice', code)) is False

    clock.advance(30)
    assert asyncio.run(login.verify_login('alice', generator.generate(TEST_SECRET))) is True


def test_older_step_after_newer_is_rejected(login, generator, enabled_alice):
    current = generator.current_step()
    assert asyncio.run(login.verify_login('alice', generator.generate(TEST_SECRET, current))) is True
    assert asyncio.run(login.verify_login('alice', generator.generate(TEST_SECRET, current - 1))) is False


def test_replay_protection_can_be_disabled(store, generator, recorder, enabled_alice):
    login = TwoFactorLoginFlow(store, verifier=TotpVerifier(generator), recorder=recorder,
                               replay_protection=False)
    code = generator.generate(TEST_SECRET)
    assert asyncio.run(login.verify_login('alice', code)) is True
    assert asyncio.run(login.verify_login('alice', code)) is True


def test_disable_clears_secret_and_notifies(login, store, recorder, notifier, enabled_alice):
    assert asyncio.run(login.disable('alice')) is True
    config = asyncio.run(store.get_config('alice'))
    assert config.enabled is False
    assert config.secret is None
    recorder.flush()
    assert 'Two-Factor Authentication Disabled' in notifier.titles
    assert asyncio.run(login.is_enabled('alice')) is False


def test_disable_when_already_off(login, recorder, notifier):
    assert asyncio.run(login.disable('alice')) is False
    recorder.flush()
    assert notifier.titles == []


def test_enroll_then_disable_then_login_raises(store, generator, clock, recorder, login):
    enrollment = TwoFactorEnrollmentFlow(
        store,
        verifier=TotpVerifier(generator),
        pending=PendingEnrollmentStore(clock=clock),
        recorder=recorder,
    )
    result = asyncio.run(enrollment.start('alice'))
    code = generator.generate(result.secret)
    assert asyncio.run(enrollment.confirm('alice', code)) is True

    # the enrollment code is consumed; the next step's code logs in
    assert asyncio.run(login.verify_login('alice', code)) is False
    clock.advance(30)
    assert asyncio.run(login.verify_login('alice', generator.generate(result.secret))) is True

    asyncio.run(login.disable('alice'))
    with pytest.raises(TwoFactorNotEnabled):
        asyncio.run(login.verify_login('alice', code))


def test_enabled_config_requires_secret():
    with pytest.raises(ValueError):
        TwoFactorConfig(enabled=True, secret=None)


def test_disable_resets_enrollment_state(store, generator, clock, recorder, login):
    enrollment = TwoFactorEnrollmentFlow(
        store,
        verifier=TotpVerifier(generator),
        pending=PendingEnrollmentStore(clock=clock),
        recorder=recorder,
    )
    result = asyncio.run(enrollment.start('alice'))
    asyncio.run(enrollment.confirm('alice', generator.generate(result.secret)))
    assert asyncio.run(enrollment.state('alice')) == EnrollmentState.CONFIRMED

    assert asyncio.run(login.disable('alice')) is True
    assert asyncio.run(login.is_enabled('alice')) is False
    assert asyncio.run(enrollment.state('alice')) == EnrollmentState.IDLE


class StaleReadStore(InMemoryConfigStore):
    """Returns the first config it read, like two requests racing on one row."""

    def __init__(self):
        super().__init__()
        self.snapshot = None

    async def get_config(self, identity):
        if self.snapshot is None:
            self.snapshot = await super().get_config(identity)
        return self.snapshot


def test_same_code_cannot_win_twice_with_stale_reads(generator, recorder):
    store = StaleReadStore()
    asyncio.run(store.upsert_config('alice', TwoFactorConfig(enabled=True, secret=TEST_SECRET)))
    login = TwoFactorLoginFlow(store, verifier=TotpVerifier(generator), recorder=recorder)

    code = generator.generate(TEST_SECRET)
    assert asyncio.run(login.verify_login('alice', code)) is True
    # both requests read last_accepted_step=None; only one may advance it
    assert asyncio.run(login.verify_login('alice', code)) is False


def test_advance_accepted_step_is_monotonic(store, enabled_alice):
    assert asyncio.run(store.advance_accepted_step('alice', 10)) is True
    assert asyncio.run(store.advance_accepted_step('alice', 10)) is False
    assert asyncio.run(store.advance_accepted_step('alice', 9)) is False
    assert asyncio.run(store.advance_accepted_step('alice', 11)) is True
    assert asyncio.run(store.get_config('alice')).last_accepted_step == 11
    assert asyncio.run(store.advance_accepted_step('nobody', 1)) is False
