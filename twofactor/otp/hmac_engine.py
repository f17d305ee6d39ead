# twofactor/otp/hmac_engine.py

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, hmac

from twofactor.errors import CryptoBackendUnavailable

# Keyed-hash primitive used by the code generator.
# Alternate backends (HSM, other digests) only need to provide hmac_sha1().


class HmacEngine:
    digest_size = 20

    def hmac_sha1(self, key: bytes, message: bytes) -> bytes:
        """Return the 20-byte HMAC-SHA1 digest of message under key."""
        try:
            mac = hmac.HMAC(key, hashes.SHA1())
            mac.update(message)
            return mac.finalize()
        except UnsupportedAlgorithm as e:
            raise CryptoBackendUnavailable(f"HMAC-SHA1 is not available: {e}")
