"""In-process admin session store.

Tokens are opaque random strings mapped to the admin who logged in.  The
map lives in this process only: sessions vanish on restart and are not
shared between workers, so the admin API assumes a single instance.
"""

from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from django.utils import timezone

TOKEN_BYTES = 32


@dataclass(frozen=True)
class AdminSession:
    username: str
    login_at: datetime


class AdminSessionStore:
    def __init__(self) -> None:
        self._sessions: Dict[str, AdminSession] = {}
        self._lock = threading.Lock()

    def issue(self, username: str) -> str:
        token = secrets.token_urlsafe(TOKEN_BYTES)
        with self._lock:
            self._sessions[token] = AdminSession(username=username, login_at=timezone.now())
        return token

    def resolve(self, token: str) -> Optional[AdminSession]:
        with self._lock:
            return self._sessions.get(token)

    def revoke(self, token: str) -> bool:
        with self._lock:
            return self._sessions.pop(token, None) is not None

    def revoke_user(self, username: str, keep: Optional[str] = None) -> int:
        """Drop every session of ``username`` except ``keep``."""
        with self._lock:
            tokens = [
                t
                for t, s in self._sessions.items()
                if s.username == username and t != keep
            ]
            for token in tokens:
                del self._sessions[token]
        return len(tokens)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


admin_sessions = AdminSessionStore()
