"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). The store owns
persistence, tokens.py owns encoding, service.py does the work.

Layer rule: no imports from core/.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class User:
    """A local account as held by the credential store.

    id is a UUID4 generated at registration and never changes. username is
    case-sensitive. password_hash is the bcrypt digest; it is excluded from
    repr so it never ends up in a log line by accident.
    """

    id: uuid.UUID
    username: str
    password_hash: str = field(repr=False)
    created_at: datetime

    def public(self) -> PublicUser:
        return PublicUser(id=self.id, username=self.username, created_at=self.created_at)


@dataclass(frozen=True)
class PublicUser:
    """What Register hands back to the caller: identity without the digest."""

    id: uuid.UUID
    username: str
    created_at: datetime


@dataclass(frozen=True)
class Claims:
    """The payload signed into every token.

    subject is the user id in string form; expires_at is absolute (UTC).
    issued_at and token_id are informational and not checked on validation.
    Access and refresh tokens share this shape -- only the TTL differs.
    """

    subject: str
    expires_at: datetime
    issued_at: datetime | None = None
    token_id: str | None = None


@dataclass(frozen=True)
class TokenPair:
    """A short-lived access token and a long-lived refresh token. Never persisted."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"  # noqa: S105 # nosec B105 -- OAuth token type, not a password
