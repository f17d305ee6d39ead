# twofactor/errors.py

# Error taxonomy for the two-factor engine.
# A wrong code is never an exception: verification returns False.


class TwoFactorError(Exception):
    """Base class for all two-factor failures."""
    pass


class InvalidSecretFormat(TwoFactorError):
    """Raised when a stored or provisioned secret is not valid base32."""
    pass


class CryptoBackendUnavailable(TwoFactorError):
    """Raised when the HMAC primitive cannot be invoked."""
    pass


class NoEnrollmentInProgress(TwoFactorError):
    """Raised when confirm/cancel is called without a live pending enrollment."""
    pass


class TwoFactorNotEnabled(TwoFactorError):
    """Raised when login verification is attempted for an identity without confirmed 2FA."""
    pass
