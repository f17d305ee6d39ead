# twofactor/otp/base32.py

import secrets

from twofactor.errors import InvalidSecretFormat

# RFC 4648 base32 alphabet, the form authenticator apps expect secrets in

ALPHABET = 'ABCDEFGHIJKLMNOPQRSTUVWXYZ234567'
_LOOKUP = {char: index for index, char in enumerate(ALPHABET)}

# 26 characters * 5 bits = 130 bits
MIN_SECRET_LENGTH = 26


class Base32Codec:
    def __init__(self, random_bytes=secrets.token_bytes):
        # extracted for deterministic secrets in tests
        self.random_bytes = random_bytes

    def decode(self, text) -> bytes:
        """Decode base32 text into raw key bytes, discarding leftover bits."""
        if not isinstance(text, str):
            raise InvalidSecretFormat("Secret must be base32 text")

        clean = text.rstrip('=').upper()
        output = bytearray()
        buffer = 0
        bits_left = 0

        for char in clean:
            value = _LOOKUP.get(char)
            if value is None:
                raise InvalidSecretFormat("Invalid base32 character in secret")
            buffer = ((buffer << 5) | value) & 0xFFFF
            bits_left += 5
            if bits_left >= 8:
                output.append((buffer >> (bits_left - 8)) & 0xFF)
                bits_left -= 8

        return bytes(output)

    def encode(self, data: bytes) -> str:
        """Byte-preserving base32 encoding without padding."""
        chars = []
        buffer = 0
        bits_left = 0

        for byte in data:
            buffer = ((buffer << 8) | byte) & 0xFFFF
            bits_left += 8
            while bits_left >= 5:
                chars.append(ALPHABET[(buffer >> (bits_left - 5)) & 0x1F])
                bits_left -= 5

        if bits_left:
            chars.append(ALPHABET[(buffer << (5 - bits_left)) & 0x1F])

        return ''.join(chars)

    def random_secret(self, length: int = 32) -> str:
        """Generate a secret with one alphabet character per secure random byte."""
        if length < MIN_SECRET_LENGTH:
            raise ValueError(f"Secret length must be at least {MIN_SECRET_LENGTH} characters")
        return ''.join(ALPHABET[byte % 32] for byte in self.random_bytes(length))
