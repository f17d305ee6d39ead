# twofactor/encryption/secret_encryption.py
"""Encryption of confirmed TOTP secrets at rest using AES-256-GCM with a key envelope.

Each secret is encrypted with its own random AES-256-GCM key; that key is
then wrapped with Fernet under the master key, so the master key can be
rotated by re-wrapping envelopes without touching the secrets themselves.
The identity the secret belongs to is bound as associated data, so a
ciphertext copied onto another identity's row fails to decrypt.

Exception hierarchy:
- SecretDecryptionError: Base class for all decryption failures
  - InvalidPackageError: Malformed input (base64/JSON decode failures)
  - KeyDecryptionError: Master key cannot unwrap the secret key (wrong key)
  - IntegrityError: Ciphertext/tag verification failed (tampering or wrong identity)

Usage:
    svc = SecretEncryptionService(master_key='32-byte-master-key')
    token = svc.encrypt_secret('JBSWY3DPEHPK3PXP...', identity='alice')
    secret = svc.decrypt_secret(token, identity='alice')
"""

import base64
import json
import os

from cryptography.exceptions import InvalidTag
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes


class SecretEncryptionService:
    def __init__(self, master_key=None):
        if master_key is None:
            master_key = os.environ.get('ENCRYPTION_MASTER_KEY', 'default-32-byte-key!!!!!1234567890abcd')
        master_key = master_key.encode()
        if len(master_key) < 32:
            raise ValueError("ENCRYPTION_MASTER_KEY must be at least 32 bytes")
        self.master_key = master_key[:32]
        self._fernet = Fernet(base64.urlsafe_b64encode(self.master_key))

    def encrypt_secret(self, secret: str, identity: str) -> str:
        """Encrypt a base32 secret for storage"""
        secret_key = os.urandom(32)
        iv = os.urandom(12)  # GCM standard nonce length

        encryptor = Cipher(algorithms.AES(secret_key), modes.GCM(iv)).encryptor()
        encryptor.authenticate_additional_data(str(identity).encode())
        ciphertext = encryptor.update(secret.encode()) + encryptor.finalize()

        package = {
            'encrypted_secret': base64.b64encode(ciphertext).decode(),
            'encrypted_key': base64.b64encode(self._fernet.encrypt(secret_key)).decode(),
            'iv': base64.b64encode(iv).decode(),
            'tag': base64.b64encode(encryptor.tag).decode(),
        }
        return base64.b64encode(json.dumps(package).encode()).decode()

    def decrypt_secret(self, token: str, identity: str) -> str:
        """Decrypt a stored secret"""
        try:
            package = json.loads(base64.b64decode(token).decode())
        except Exception as e:
            raise InvalidPackageError(f"Invalid encrypted package: {e}")

        required_fields = ['encrypted_key', 'encrypted_secret', 'iv', 'tag']
        missing_fields = [f for f in required_fields if f not in package]
        if missing_fields:
            raise InvalidPackageError(f"Missing required fields: {', '.join(missing_fields)}")

        try:
            secret_key = self._fernet.decrypt(base64.b64decode(package['encrypted_key']))
        except InvalidToken as e:
            raise KeyDecryptionError(f"Failed to decrypt envelope key: {e}")

        try:
            decryptor = Cipher(
                algorithms.AES(secret_key),
                modes.GCM(base64.b64decode(package['iv']), base64.b64decode(package['tag']))
            ).decryptor()
            decryptor.authenticate_additional_data(str(identity).encode())
            plaintext = decryptor.update(base64.b64decode(package['encrypted_secret'])) + decryptor.finalize()
        except InvalidTag as e:
            raise IntegrityError(f"GCM authentication failed: {e}")
        return plaintext.decode()


class SecretDecryptionError(Exception):
    """Base exception for decryption-related failures."""
    pass


class InvalidPackageError(SecretDecryptionError):
    """Raised when the encrypted package is malformed (bad base64/JSON)."""
    pass


class KeyDecryptionError(SecretDecryptionError):
    """Raised when the envelope key cannot be decrypted with the master key."""
    pass


class IntegrityError(SecretDecryptionError):
    """Raised when ciphertext/tag authentication fails (GCM tag mismatch)."""
    pass
