# twofactor/audit/audit_logger.py

import base64
import hashlib
import json
import logging
import os
from datetime import datetime, timezone

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

logger = logging.getLogger(__name__)

# Append-only audit log of security events, hash chained and Ed25519 signed.
# Keys that could carry secret material are redacted before anything is written.

REDACTED_KEYS = frozenset({'secret', 'code', 'token', 'candidate', 'provisioning_uri', 'qr_code'})


def redact(data):
    if isinstance(data, dict):
        return {k: ('[REDACTED]' if str(k).lower() in REDACTED_KEYS else redact(v))
                for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return [redact(v) for v in data]
    return data


class AuditLogger:
    def __init__(self, log_dir='logs', signing_key=None):
        self.log_dir = log_dir
        self.log_file = os.path.join(log_dir, 'audit.log')
        self.previous_hash = None

        os.makedirs(log_dir, exist_ok=True)

        self.signing_key = signing_key or Ed25519PrivateKey.generate()
        self._load_previous_hash()

    @classmethod
    def from_pem(cls, log_dir, pem_path):
        with open(pem_path, 'rb') as f:
            key = serialization.load_pem_private_key(f.read(), password=None)
        if not isinstance(key, Ed25519PrivateKey):
            raise ValueError("Audit signing key must be an Ed25519 private key")
        return cls(log_dir=log_dir, signing_key=key)

    def _load_previous_hash(self):
        if os.path.exists(self.log_file):
            with open(self.log_file, 'r') as f:
                lines = [line for line in f.readlines() if line.strip()]
                if lines:
                    try:
                        last_entry = json.loads(lines[-1])
                        self.previous_hash = last_entry.get('hash')
                    except json.JSONDecodeError:
                        logger.warning("Last audit log entry is not valid JSON; starting a new chain")
                        self.previous_hash = None

    def log_security_event(self, event_type, data, user_id=None, status='success'):
        """Append a signed entry. Failures are logged and never raised."""
        try:
            log_entry = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "event_type": event_type,
                "status": status,
                "data": redact(data or {}),
                "user_id": user_id,
                "previous_hash": self.previous_hash,
            }
            entry_json = json.dumps(log_entry, sort_keys=True)
            entry_hash = hashlib.sha256(entry_json.encode()).hexdigest()
            log_entry['hash'] = entry_hash

            signature = self.signing_key.sign(entry_json.encode())
            log_entry['signature'] = base64.b64encode(signature).decode()

            with open(self.log_file, 'a') as f:
                f.write(json.dumps(log_entry) + "\n")

            self.previous_hash = entry_hash
            return entry_hash
        except Exception:
            logger.exception("Audit log write failed for event %s", event_type)
            return None

    def verify_log_integrity(self):
        try:
            if not os.path.exists(self.log_file):
                return True
            public_key = self.signing_key.public_key()
            previous_hash = None
            with open(self.log_file, 'r') as f:
                for line in f:
                    if not line.strip():
                        continue
                    log_entry = json.loads(line)
                    if log_entry.get('previous_hash') != previous_hash:
                        return False
                    signature = base64.b64decode(log_entry.pop('signature'))
                    entry_hash = log_entry.pop('hash')
                    entry_json = json.dumps(log_entry, sort_keys=True).encode()
                    if hashlib.sha256(entry_json).hexdigest() != entry_hash:
                        return False
                    public_key.verify(signature, entry_json)
                    previous_hash = entry_hash
            return True
        except Exception:
            logger.warning("Audit log integrity check failed", exc_info=True)
            return False

    def read_entries(self, user_id=None):
        if not os.path.exists(self.log_file):
            return []
        entries = []
        with open(self.log_file, 'r') as f:
            for line in f:
                if not line.strip():
                    continue
                entry = json.loads(line)
                if user_id is None or entry.get('user_id') == user_id:
                    entries.append(entry)
        return entries
