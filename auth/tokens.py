"""
auth/tokens.py -- JWT encoding, pair issuance, and refresh rotation.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry sub (user id), exp, iat and jti.
       The algorithm is pinned: a header declaring anything other than HS256
       (including "none") is rejected before any signature work is done.
       jose's HMAC verification compares digests with hmac.compare_digest.

  Expiry: checked here against an explicit `now` rather than by jose against
       the wall clock, so validation is a pure function of (token, now) and
       tests can use a synthetic clock.

  Rotation: unconditional on validity. A refresh token stays usable until its
       own exp even after it has been exchanged -- there is no server-side
       allow-list or revocation list. A hardened variant would carry a per-user
       generation number in the claims and have the store reject superseded
       generations; nothing here depends on that being absent.

  Secret and TTLs are injected by the caller (see auth.service.build_auth_service)
  so nothing in this module reads ambient configuration.

Layer rule: no imports from core/.
"""

from __future__ import annotations

import base64
import json
import uuid
from datetime import datetime, timedelta, timezone

from jose import jws, jwt
from jose.exceptions import JOSEError, JWSError
from jose.utils import base64url_decode

from auth.errors import InvalidTokenError, SigningError, TokenError, TokenErrorKind, TokenExpiredError
from auth.models import Claims, TokenPair

ALGORITHM = "HS256"


def _to_epoch(instant: datetime) -> int:
    return int(instant.timestamp())


def _from_epoch(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


class TokenCodec:
    """Claims <-> compact HS256 token string."""

    def __init__(self, secret: str) -> None:
        self._secret = secret

    def encode(self, claims: Claims) -> str:
        """Sign claims into a header.payload.signature token.

        Raises SigningError if jose cannot produce a signature.
        """
        payload: dict = {"sub": claims.subject, "exp": _to_epoch(claims.expires_at)}
        if claims.issued_at is not None:
            payload["iat"] = _to_epoch(claims.issued_at)
        if claims.token_id is not None:
            payload["jti"] = claims.token_id
        try:
            return jwt.encode(payload, self._secret, algorithm=ALGORITHM)
        except JOSEError as exc:
            raise SigningError() from exc

    def decode(self, token: str) -> Claims:
        """Verify the signature of token and return its claims.

        Does not look at expiry. Raises TokenError with kind MALFORMED when the
        token is not a three-segment JWT with a readable header, or when a
        correctly signed payload lacks usable sub/exp claims; kind
        BAD_SIGNATURE when the declared algorithm is not HS256, the signature
        segment is not canonical base64url, or verification of the MAC fails.
        """
        if not isinstance(token, str) or token.count(".") != 2:
            raise TokenError(TokenErrorKind.MALFORMED)
        header_segment, _payload_segment, signature_segment = token.split(".")
        header = _load_segment(header_segment)

        # Algorithm pinning: never let the token choose how it is verified.
        if header.get("alg") != ALGORITHM:
            raise TokenError(TokenErrorKind.BAD_SIGNATURE)

        # jose ignores the unused low bits of the last signature character, so
        # distinct signature strings can decode to the same MAC.
        if not _is_canonical_b64url(signature_segment):
            raise TokenError(TokenErrorKind.BAD_SIGNATURE)

        try:
            payload_bytes = jws.verify(token, self._secret, algorithms=[ALGORITHM])
        except JWSError as exc:
            raise TokenError(TokenErrorKind.BAD_SIGNATURE) from exc

        try:
            payload = json.loads(payload_bytes)
        except ValueError as exc:
            raise TokenError(TokenErrorKind.MALFORMED) from exc
        if not isinstance(payload, dict):
            raise TokenError(TokenErrorKind.MALFORMED)
        return _claims_from_payload(payload)


def _load_segment(segment: str) -> dict:
    try:
        decoded = json.loads(base64url_decode(segment.encode("ascii")))
    except ValueError as exc:
        raise TokenError(TokenErrorKind.MALFORMED) from exc
    if not isinstance(decoded, dict):
        raise TokenError(TokenErrorKind.MALFORMED)
    return decoded


def _is_canonical_b64url(segment: str) -> bool:
    try:
        raw = segment.encode("ascii")
        return base64.urlsafe_b64encode(base64url_decode(raw)).rstrip(b"=") == raw
    except ValueError:
        return False


def _claims_from_payload(payload: dict) -> Claims:
    sub = payload.get("sub")
    exp = payload.get("exp")
    iat = payload.get("iat")
    if not isinstance(sub, str) or not _is_epoch(exp):
        raise TokenError(TokenErrorKind.MALFORMED)
    return Claims(
        subject=sub,
        expires_at=_from_epoch(exp),
        issued_at=_from_epoch(iat) if _is_epoch(iat) else None,
        token_id=payload.get("jti") if isinstance(payload.get("jti"), str) else None,
    )


def _is_epoch(value) -> bool:
    # bool is an int subclass; true/false is not a timestamp.
    return isinstance(value, int) and not isinstance(value, bool)


# ---------------------------------------------------------------------------
# Issuer
# ---------------------------------------------------------------------------


class TokenIssuer:
    """Issue matched access/refresh token pairs.

    Args:
        codec:       TokenCodec holding the process signing secret.
        access_ttl:  Lifetime of access tokens.
        refresh_ttl: Lifetime of refresh tokens.
    """

    def __init__(self, codec: TokenCodec, access_ttl: timedelta, refresh_ttl: timedelta) -> None:
        self.codec = codec
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def issue_pair(self, user_id: uuid.UUID | str, now: datetime) -> TokenPair:
        """Return a new TokenPair for user_id, both tokens issued at now.

        SigningError from the codec propagates unchanged.
        """
        subject = str(user_id)
        access = Claims(subject=subject, expires_at=now + self.access_ttl, issued_at=now, token_id=uuid.uuid4().hex)
        refresh = Claims(subject=subject, expires_at=now + self.refresh_ttl, issued_at=now, token_id=uuid.uuid4().hex)
        return TokenPair(access_token=self.codec.encode(access), refresh_token=self.codec.encode(refresh))


# ---------------------------------------------------------------------------
# Validator / rotator
# ---------------------------------------------------------------------------


class TokenValidator:
    """Validate presented tokens and rotate refresh tokens into new pairs."""

    def __init__(self, codec: TokenCodec, issuer: TokenIssuer) -> None:
        self.codec = codec
        self.issuer = issuer

    def validate(self, token: str, now: datetime) -> Claims:
        """Return the claims of a correctly signed token that has not expired.

        Raises TokenError (MALFORMED / BAD_SIGNATURE) from the codec, or
        TokenExpiredError when exp is not strictly after now.
        """
        claims = self.codec.decode(token)
        if claims.expires_at <= now:
            raise TokenExpiredError()
        return claims

    def subject_of(self, token: str, now: datetime) -> uuid.UUID:
        """Validate token and return its subject as a user id.

        Raises InvalidTokenError for decode failures and unusable subjects,
        TokenExpiredError for expired tokens.
        """
        try:
            claims = self.validate(token, now)
        except TokenExpiredError:
            raise
        except TokenError as exc:
            raise InvalidTokenError(exc.kind) from exc
        try:
            return uuid.UUID(claims.subject)
        except ValueError as exc:
            raise InvalidTokenError(TokenErrorKind.MALFORMED) from exc

    def rotate(self, refresh_token: str, now: datetime) -> TokenPair:
        """Exchange a valid refresh token for a brand-new pair.

        The presented token is not invalidated.
        """
        user_id = self.subject_of(refresh_token, now)
        return self.issuer.issue_pair(user_id, now)
