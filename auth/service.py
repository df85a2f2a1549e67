"""
auth/service.py -- Register, Login and RefreshToken.

AuthService is the only entry point a request-handling layer should call. It
composes the password hasher, the token issuer/validator and a credential
store, and it is the trust boundary for error detail:

  - Every authentication failure (unknown user, wrong password, forged,
    malformed or expired refresh token, unusable subject) leaves as the same
    CredentialError. The internal reason is logged, never returned.
  - Hashing and signing faults leave as InternalError.
  - Store failures propagate as StorageError / ConflictError.

Timing equalization [C1]: login() always runs bcrypt, whether or not the
username exists, so response time does not reveal registered usernames.

The service keeps no mutable state; one instance may serve any number of
concurrent callers. The store is the only serialization point.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Protocol

from auth.errors import (
    CredentialError,
    HashingError,
    InternalError,
    SigningError,
    TokenError,
    ValidationError,
)
from auth.models import PublicUser, TokenPair, User
from auth.passwords import MAX_PASSWORD_BYTES, PasswordHasher
from auth.tokens import TokenCodec, TokenIssuer, TokenValidator

logger = logging.getLogger("radionica.auth")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CredentialStore(Protocol):
    """What AuthService needs from persistence. auth.store.UserStore satisfies it."""

    def create_user(self, user: User) -> None: ...

    def get_by_username(self, username: str) -> User | None: ...


class AuthService:
    """Public authentication API.

    Args:
        store:     Credential store (create_user / get_by_username).
        hasher:    PasswordHasher configured with the bcrypt cost.
        issuer:    TokenIssuer configured with the secret and both TTLs.
        validator: TokenValidator sharing the issuer's codec.
        clock:     Returns the current UTC instant. Injected for tests.
    """

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        issuer: TokenIssuer,
        validator: TokenValidator,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.issuer = issuer
        self.validator = validator
        self.clock = clock

    def register(self, username: str, password: str) -> PublicUser:
        """Create a new account and return its public view.

        Raises ValidationError for an empty username or password (or a
        password bcrypt cannot take), InternalError if hashing fails,
        ConflictError if the store already holds the username, StorageError
        for other store failures. No pre-insert existence check is made.
        """
        if not username:
            raise ValidationError("Username is required.")
        if not password:
            raise ValidationError("Password is required.")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")

        try:
            password_hash = self.hasher.hash(password)
        except HashingError as exc:
            logger.exception("Password hashing failed during registration")
            raise InternalError() from exc

        user = User(id=uuid.uuid4(), username=username, password_hash=password_hash, created_at=self.clock())
        self.store.create_user(user)
        logger.info("User registered (id=%s)", user.id)
        return user.public()

    def login(self, username: str, password: str) -> TokenPair:
        """Verify username/password and issue a fresh token pair.

        Raises CredentialError for an unknown username and for a wrong
        password -- the two are indistinguishable by value and by timing.
        """
        user = self.store.get_by_username(username)
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            self.hasher.equalize(password)
            logger.warning("Login rejected: unknown username")
            raise CredentialError()
        if not self.hasher.verify(password, user.password_hash):
            logger.warning("Login rejected: password mismatch (id=%s)", user.id)
            raise CredentialError()

        pair = self._issue(user.id)
        logger.info("Login succeeded (id=%s)", user.id)
        return pair

    def refresh_token(self, refresh_token: str) -> TokenPair:
        """Exchange a valid refresh token for a new pair.

        The presented refresh token stays valid until its own expiry.
        Raises CredentialError for any invalid, forged or expired token.
        """
        try:
            pair = self.validator.rotate(refresh_token, self.clock())
        except TokenError as exc:
            logger.warning("Refresh rejected: %s", exc.kind.value)
            raise CredentialError() from None
        except SigningError as exc:
            logger.exception("Token signing failed during refresh")
            raise InternalError() from exc

        logger.info("Tokens refreshed")
        return pair

    def _issue(self, user_id: uuid.UUID) -> TokenPair:
        try:
            return self.issuer.issue_pair(user_id, self.clock())
        except SigningError as exc:
            logger.exception("Token signing failed")
            raise InternalError() from exc


def build_auth_service(settings, store: CredentialStore, clock: Clock = utc_now) -> AuthService:
    """Wire an AuthService from a core.config.Settings instance.

    Settings is read once here; the components receive plain values and never
    consult configuration themselves.
    """
    codec = TokenCodec(settings.jwt_secret)
    issuer = TokenIssuer(codec, access_ttl=settings.token_duration, refresh_ttl=settings.refresh_token_duration)
    return AuthService(
        store=store,
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds, max_concurrent=settings.max_concurrent_hashes),
        issuer=issuer,
        validator=TokenValidator(codec, issuer),
        clock=clock,
    )
