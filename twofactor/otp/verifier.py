# twofactor/otp/verifier.py

import hmac
import logging
import re

from twofactor.otp.generator import TotpCodeGenerator

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = 2

_CODE_PATTERN = re.compile(r'[0-9]{6}')
_WHITESPACE = re.compile(r'\s+')


def normalize_code(candidate):
    """Strip whitespace; return None unless exactly six ASCII digits remain."""
    if not isinstance(candidate, str):
        return None
    clean = _WHITESPACE.sub('', candidate)
    if not _CODE_PATTERN.fullmatch(clean):
        return None
    return clean


class TotpVerifier:
    """Checks candidate codes against the steps around the current one.

    The window radius tolerates client/server clock skew: with a radius of W
    the steps current-W .. current+W (ascending) are tried and the first
    match wins. No memory of accepted steps is kept here; replay protection
    belongs to the login flow.
    """

    def __init__(self, generator=None, default_window=DEFAULT_WINDOW):
        self.generator = generator if generator is not None else TotpCodeGenerator()
        self.default_window = default_window

    def match_step(self, secret: str, candidate, window: int = None):
        """Return the matching time step, or None when nothing matches."""
        if window is None:
            window = self.default_window
        if window < 0:
            raise ValueError("Verification window must be non-negative")

        # A malformed secret is a provisioning/storage bug and propagates
        key = self.generator.decode_secret(secret)

        code = normalize_code(candidate)
        if code is None:
            logger.debug("Rejected candidate code with invalid format")
            return None

        current = self.generator.current_step()
        for offset in range(-window, window + 1):
            step = current + offset
            if step < 0:
                continue
            expected = self.generator.generate_for_key(key, step)
            if hmac.compare_digest(expected, code):
                logger.debug("TOTP matched at step %d (offset %d)", step, offset)
                return step

        logger.debug("TOTP did not match within %d steps of %d", window, current)
        return None

    def verify(self, secret: str, candidate, window: int = None) -> bool:
        return self.match_step(secret, candidate, window) is not None
