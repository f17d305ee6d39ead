# twofactor/otp/generator.py
"""TOTP code generation (RFC 6238 on top of RFC 4226 HOTP).

The counter is the 30-second time step framed as an 8-byte big-endian
unsigned integer; the code is the RFC 4226 dynamic truncation of the
HMAC-SHA1 digest reduced to six decimal digits.
"""

import struct
import time

from twofactor.errors import InvalidSecretFormat
from twofactor.otp.base32 import Base32Codec
from twofactor.otp.hmac_engine import HmacEngine

PERIOD_SECONDS = 30
DIGITS = 6
_MODULUS = 10 ** DIGITS


def time_step(for_time: float) -> int:
    """Time step index for a unix timestamp."""
    return int(for_time // PERIOD_SECONDS)


def truncate(digest: bytes) -> int:
    """RFC 4226 dynamic truncation to a 31-bit unsigned integer."""
    offset = digest[-1] & 0x0F
    return (
        ((digest[offset] & 0x7F) << 24)
        | (digest[offset + 1] << 16)
        | (digest[offset + 2] << 8)
        | digest[offset + 3]
    )


class TotpCodeGenerator:
    def __init__(self, hmac_engine=None, codec=None, clock=time.time):
        self.hmac_engine = hmac_engine if hmac_engine is not None else HmacEngine()
        self.codec = codec if codec is not None else Base32Codec()
        self.clock = clock

    def current_step(self) -> int:
        return time_step(self.clock())

    def decode_secret(self, secret: str) -> bytes:
        key = self.codec.decode(secret)
        if not key:
            raise InvalidSecretFormat("Secret decodes to an empty key")
        return key

    def generate(self, secret: str, step: int = None) -> str:
        """Return the 6-digit code for secret at step (defaults to now)."""
        key = self.decode_secret(secret)
        if step is None:
            step = self.current_step()
        return self.generate_for_key(key, step)

    def generate_for_key(self, key: bytes, step: int) -> str:
        if step < 0:
            raise ValueError("Time step must be non-negative")
        counter = struct.pack('>Q', step)
        digest = self.hmac_engine.hmac_sha1(key, counter)
        return str(truncate(digest) % _MODULUS).zfill(DIGITS)
