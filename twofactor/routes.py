# twofactor/routes.py

# JSON endpoints consumed by the authentication UI.
# Identity comes from the JWT; pending enrollments are tied to the Flask session.

import logging
import secrets

from flask import Blueprint, current_app, jsonify, request, session
from flask_jwt_extended import get_jwt_identity, jwt_required

from twofactor.errors import (
    CryptoBackendUnavailable,
    InvalidSecretFormat,
    NoEnrollmentInProgress,
    TwoFactorNotEnabled,
)
from twofactor.extensions import limiter
from twofactor.operations.time_sync import check_time_sync, skew_budget

logger = logging.getLogger(__name__)

two_factor_bp = Blueprint('two_factor', __name__, url_prefix='/api/2fa')

SESSION_KEY = 'twofactor_session'


def _services():
    return current_app.extensions['twofactor']


def _session_id():
    if SESSION_KEY not in session:
        session[SESSION_KEY] = secrets.token_urlsafe(16)
    return session[SESSION_KEY]


def _verify_rate_limit():
    return current_app.config['TWOFACTOR_VERIFY_RATE_LIMIT']


def _rate_limit_key():
    return str(get_jwt_identity())


def _submitted_code():
    payload = request.get_json(silent=True) or {}
    return payload.get('code', '')


@two_factor_bp.errorhandler(NoEnrollmentInProgress)
def handle_no_enrollment(error):
    return jsonify({'error': 'No two-factor setup in progress'}), 409


@two_factor_bp.errorhandler(TwoFactorNotEnabled)
def handle_not_enabled(error):
    return jsonify({'error': 'Two-factor authentication is not enabled'}), 409


@two_factor_bp.errorhandler(CryptoBackendUnavailable)
def handle_crypto_unavailable(error):
    logger.error("Crypto backend unavailable: %s", error)
    return jsonify({'error': 'Verification is temporarily unavailable, please try again'}), 503


@two_factor_bp.errorhandler(InvalidSecretFormat)
def handle_invalid_secret(error):
    logger.error("Stored two-factor secret is malformed: %s", error)
    return jsonify({'error': 'Two-factor configuration error'}), 500


@two_factor_bp.route('/setup', methods=['POST'])
@jwt_required()
async def setup():
    identity = get_jwt_identity()
    payload = request.get_json(silent=True) or {}
    result = await _services()['enrollment'].start(
        identity,
        account_label=payload.get('account_label'),
        session_id=_session_id(),
    )
    return jsonify({
        'secret': result.secret,
        'provisioning_uri': result.provisioning_uri,
        'qr_code': result.qr_code,
    })


@two_factor_bp.route('/verify', methods=['POST'])
@jwt_required()
@limiter.limit(_verify_rate_limit, key_func=_rate_limit_key)
async def verify_setup():
    identity = get_jwt_identity()
    enabled = await _services()['enrollment'].confirm(identity, _submitted_code(), session_id=_session_id())
    return jsonify({'verified': enabled})


@two_factor_bp.route('/cancel', methods=['POST'])
@jwt_required()
async def cancel_setup():
    await _services()['enrollment'].cancel(get_jwt_identity(), session_id=_session_id())
    return jsonify({'cancelled': True})


@two_factor_bp.route('/login', methods=['POST'])
@jwt_required()
@limiter.limit(_verify_rate_limit, key_func=_rate_limit_key)
async def verify_login():
    identity = get_jwt_identity()
    verified = await _services()['login'].verify_login(identity, _submitted_code())
    if verified:
        session['two_factor_verified'] = True
    return jsonify({'verified': verified})


@two_factor_bp.route('/disable', methods=['POST'])
@jwt_required()
async def disable():
    disabled = await _services()['login'].disable(get_jwt_identity())
    session.pop('two_factor_verified', None)
    return jsonify({'disabled': disabled})


@two_factor_bp.route('/status', methods=['GET'])
@jwt_required()
async def status():
    identity = get_jwt_identity()
    services = _services()
    return jsonify({
        'enabled': await services['login'].is_enabled(identity),
        'enrollment_state': (await services['enrollment'].state(identity, session.get(SESSION_KEY))).value,
    })


@two_factor_bp.route('/session/end', methods=['POST'])
@jwt_required()
def end_session():
    session_id = session.pop(SESSION_KEY, None)
    dropped = _services()['enrollment'].end_session(session_id) if session_id else 0
    session.pop('two_factor_verified', None)
    return jsonify({'discarded_enrollments': dropped})


@two_factor_bp.route('/clock', methods=['GET'])
@jwt_required()
def clock():
    summary = check_time_sync(servers=current_app.config['NTP_SERVERS'])
    summary['skew_budget'] = skew_budget(summary['average_offset_s'], current_app.config['TWOFACTOR_VERIFY_WINDOW'])
    return jsonify(summary)
