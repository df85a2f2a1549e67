"""
tests/conftest.py -- Shared fixtures for the auth test suite.

This module provides:
  - FrozenClock / clock: a controllable UTC clock injected into AuthService
  - hasher: PasswordHasher at bcrypt cost 4 (the minimum) for speed
  - codec / issuer / validator: token components on a fixed test secret
  - store: UserStore on a private in-memory SQLite database
  - service: AuthService wired from all of the above

Nothing here reads configuration from the environment -- every component gets
its secret, TTLs and clock explicitly.
"""

from __future__ import annotations

from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest

from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenCodec, TokenIssuer, TokenValidator

TEST_SECRET = "test-secret-0123456789abcdef0123456789abcdef"
ACCESS_TTL = timedelta(minutes=15)
REFRESH_TTL = timedelta(days=7)
T0 = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(TEST_SECRET)


@pytest.fixture
def issuer(codec: TokenCodec) -> TokenIssuer:
    return TokenIssuer(codec, access_ttl=ACCESS_TTL, refresh_ttl=REFRESH_TTL)


@pytest.fixture
def validator(codec: TokenCodec, issuer: TokenIssuer) -> TokenValidator:
    return TokenValidator(codec, issuer)


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def service(
    store: UserStore,
    hasher: PasswordHasher,
    issuer: TokenIssuer,
    validator: TokenValidator,
    clock: FrozenClock,
) -> AuthService:
    return AuthService(store=store, hasher=hasher, issuer=issuer, validator=validator, clock=clock)
