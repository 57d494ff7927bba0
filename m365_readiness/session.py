"""
Shared authentication session.

One Session is created per run and passed by reference to every component that
needs the current credential. Only reconnection mutates it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Session:
    """Current credential material and when it was (re)established."""
    credential: Any = None
    established_at: datetime = field(default_factory=_utcnow)

    def renew(self, credential: Any, at: Optional[datetime] = None):
        """Replace the credential in place and restamp the establishment time."""
        self.credential = credential
        self.established_at = at or _utcnow()

    @property
    def age(self) -> timedelta:
        return _utcnow() - self.established_at

    @property
    def bearer_token(self) -> str:
        if self.credential is None:
            return ""
        return str(self.credential)

    def __repr__(self) -> str:
        # Never print the credential itself
        state = "set" if self.credential is not None else "empty"
        return f"Session(credential={state}, established_at={self.established_at.isoformat()})"
