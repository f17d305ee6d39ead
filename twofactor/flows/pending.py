# twofactor/flows/pending.py

import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

DEFAULT_TTL_SECONDS = 600


@dataclass
class PendingEnrollment:
    identity: str
    secret: str = field(repr=False)
    session_id: Optional[str] = None
    created_at: float = 0.0


class PendingEnrollmentStore:
    """In-process slots for unconfirmed secrets, at most one per identity.

    Entries are never persisted. An entry older than ttl_seconds is treated
    exactly like a cancelled one. Expired entries are dropped on access to
    their identity and swept from the whole map on every put().
    """

    def __init__(self, ttl_seconds=DEFAULT_TTL_SECONDS, clock=time.time):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._slots: Dict[str, PendingEnrollment] = {}
        self._lock = threading.Lock()

    def _expired(self, pending, now):
        return self.ttl_seconds is not None and now - pending.created_at >= self.ttl_seconds

    def _drop_expired(self, now) -> int:
        expired = [i for i, p in self._slots.items() if self._expired(p, now)]
        for identity in expired:
            del self._slots[identity]
        return len(expired)

    def put(self, identity, secret, session_id=None) -> PendingEnrollment:
        now = self.clock()
        pending = PendingEnrollment(identity=identity, secret=secret,
                                    session_id=session_id, created_at=now)
        with self._lock:
            self._drop_expired(now)
            # last writer wins
            self._slots[identity] = pending
        return pending

    def get(self, identity, session_id=None) -> Optional[PendingEnrollment]:
        with self._lock:
            pending = self._slots.get(identity)
            if pending is None:
                return None
            if self._expired(pending, self.clock()):
                del self._slots[identity]
                return None
            if pending.session_id is not None and pending.session_id != session_id:
                return None
            return pending

    def discard(self, identity, secret=None) -> bool:
        """Remove the slot for identity; with secret, only if it still holds that secret."""
        with self._lock:
            pending = self._slots.get(identity)
            if pending is None:
                return False
            if secret is not None and pending.secret != secret:
                return False
            del self._slots[identity]
            return True

    def discard_session(self, session_id) -> int:
        with self._lock:
            identities = [i for i, p in self._slots.items() if p.session_id == session_id]
            for identity in identities:
                del self._slots[identity]
            return len(identities)

    def purge_expired(self) -> int:
        now = self.clock()
        with self._lock:
            return self._drop_expired(now)

    def __len__(self):
        with self._lock:
            return len(self._slots)
