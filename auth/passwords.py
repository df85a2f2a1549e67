"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt]: passlib's internal wrap-bug
detection creates a password longer than 72 bytes, which bcrypt 4.x+ rejects
with an explicit error. Direct bcrypt usage has no compatibility shim.

bcrypt embeds the salt and the cost factor in the digest itself, so verify()
needs nothing but the stored digest. bcrypt.checkpw compares digests with a
constant-time comparison.

The dummy digest enables timing equalization in AuthService.login() so
response time does not reveal whether a username exists [C1].

Layer rule: no imports from core/.
"""

from __future__ import annotations

import threading
from contextlib import nullcontext

import bcrypt

from auth.errors import HashingError

# bcrypt only looks at the first 72 bytes of its input. bcrypt 4.x truncates
# longer input silently; 5.x raises ValueError.
MAX_PASSWORD_BYTES = 72

_DUMMY_PASSWORD = "radionica_timing_dummy"


class PasswordHasher:
    """Salted, cost-parameterised one-way password hashing.

    Args:
        rounds:         bcrypt log2 cost factor (4..31).
        max_concurrent: If positive, at most this many hash/verify calls run
                        at once across all threads; the rest wait. 0 means
                        unbounded.

    Instances hold no mutable state after construction and may be shared
    between threads.
    """

    def __init__(self, rounds: int = 12, max_concurrent: int = 0) -> None:
        self.rounds = rounds
        self._slots = threading.BoundedSemaphore(max_concurrent) if max_concurrent > 0 else None
        # Computed once so the first unknown-username login is not measurably
        # faster than later ones.
        self.dummy_hash: str = self.hash(_DUMMY_PASSWORD)

    def _slot(self):
        return self._slots if self._slots is not None else nullcontext()

    def hash(self, plain: str) -> str:
        """Return a bcrypt digest of plain with a fresh random salt.

        Raises HashingError if salt generation or hashing fails. The original
        exception is chained for the server log but the plaintext is never
        part of any message.
        """
        with self._slot():
            try:
                salt = bcrypt.gensalt(rounds=self.rounds)
                digest = bcrypt.hashpw(plain.encode("utf-8"), salt)
            except (ValueError, OSError, MemoryError) as exc:
                raise HashingError() from exc
        return digest.decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if plain matches the bcrypt digest.

        Any failure (corrupt digest, over-long input) is a mismatch. Input over
        MAX_PASSWORD_BYTES never matches, even on bcrypt releases that would
        truncate it, but still costs a full verification.
        """
        encoded = plain.encode("utf-8")
        with self._slot():
            try:
                matched = bcrypt.checkpw(encoded[:MAX_PASSWORD_BYTES], hashed.encode("utf-8"))
            except ValueError:
                return False
        return matched and len(encoded) <= MAX_PASSWORD_BYTES

    def equalize(self, plain: str) -> None:
        """Spend one verification's worth of work against the dummy digest.

        Call this on code paths that would otherwise return before running
        bcrypt (e.g. unknown username) [C1].
        """
        self.verify(plain, self.dummy_hash)
