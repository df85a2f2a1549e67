"""
auth/errors.py -- Exception hierarchy for the authentication subsystem.

Every error carries a machine-readable `code` and a human-readable `message`,
the same {"code", "message"} pair a request-handling layer puts in its error
envelope.

Propagation policy:
  Component errors (HashingError, SigningError, TokenError and its subclasses)
  are specific and stay inside the subsystem. AuthService is the only place
  where detail is discarded: every authentication failure leaves it as the one
  generic CredentialError, and hashing/signing faults leave it as InternalError.

Layer rule: no imports from anywhere else in the project.
"""

from __future__ import annotations

from enum import Enum


class AuthError(Exception):
    """Base class for all errors raised by the auth package."""

    code: str = "auth_error"
    message: str = "Authentication subsystem error."

    def __init__(self, message: str | None = None, code: str | None = None) -> None:
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


# ---------------------------------------------------------------------------
# Caller-facing errors
# ---------------------------------------------------------------------------


class ValidationError(AuthError):
    """Malformed input -- the caller's fault."""

    code = "validation_error"
    message = "Invalid input."


class CredentialError(AuthError):
    """Authentication failed.

    Deliberately uninformative: unknown user, wrong password, forged token,
    expired token and malformed token all produce an instance with the same
    code and message.
    """

    code = "bad_credentials"
    message = "Invalid credentials."

    def __init__(self) -> None:
        super().__init__()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CredentialError):
            return NotImplemented
        return (self.code, self.message) == (other.code, other.message)

    def __hash__(self) -> int:
        return hash((self.code, self.message))


class InternalError(AuthError):
    """Server-side fault (hashing or signing). Logged, never detailed to the caller."""

    code = "internal_error"
    message = "An unexpected error occurred."


class StorageError(AuthError):
    """Failure reported by the credential store. Not retried here."""

    code = "storage_error"
    message = "Credential store failure."


class ConflictError(StorageError):
    """The credential store rejected a duplicate username."""

    code = "conflict"
    message = "A user with that username already exists."


# ---------------------------------------------------------------------------
# Internal component errors
# ---------------------------------------------------------------------------


class HashingError(AuthError):
    """Password hashing failed (resource or entropy exhaustion).

    The message never includes the plaintext.
    """

    code = "hashing_error"
    message = "Password hashing failed."


class SigningError(AuthError):
    """Token signing failed."""

    code = "signing_error"
    message = "Token signing failed."


class TokenErrorKind(str, Enum):
    """Why a token was rejected."""

    MALFORMED = "malformed"
    BAD_SIGNATURE = "bad_signature"
    EXPIRED = "expired"


class TokenError(AuthError):
    """A token could not be decoded, verified, or is no longer valid."""

    code = "invalid_token"
    message = "Invalid token."

    def __init__(self, kind: TokenErrorKind, message: str | None = None) -> None:
        self.kind = kind
        super().__init__(message)


class InvalidTokenError(TokenError):
    """Refresh rejected: malformed, badly signed, or without a usable subject."""


class TokenExpiredError(TokenError):
    """The token's expiry instant is not in the future."""

    code = "token_expired"
    message = "Token has expired."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(TokenErrorKind.EXPIRED, message)
