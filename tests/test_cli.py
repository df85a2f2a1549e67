"""
tests/test_cli.py -- End-to-end tests for main.py subcommands.

Each test points DATABASE_URL at a fresh SQLite file under tmp_path and
drives main.run() with an argv list, asserting on exit status and on the JSON
printed to stdout.
"""

from __future__ import annotations

import json
from datetime import timedelta

import pytest

import main
from auth.service import build_auth_service
from core.config import get_settings
from main import run
from tests.conftest import TEST_SECRET, FrozenClock


@pytest.fixture(autouse=True)
def cli_env(tmp_path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("DEBUG", raising=False)
    monkeypatch.setenv("JWT_SECRET", TEST_SECRET)
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    monkeypatch.setenv("TOKEN_DURATION", "15m")
    monkeypatch.setenv("REFRESH_TOKEN_DURATION", "168h")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _run_json(capsys: pytest.CaptureFixture, argv: list[str]) -> dict:
    assert run(argv) == 0
    return json.loads(capsys.readouterr().out)


class TestCli:
    def test_register_login_refresh_whoami(self, capsys: pytest.CaptureFixture) -> None:
        user = _run_json(capsys, ["register", "alice", "--password", "s3cret"])
        assert user["username"] == "alice"
        assert "password_hash" not in user

        pair = _run_json(capsys, ["login", "alice", "--password", "s3cret"])
        assert pair["token_type"] == "bearer"

        me = _run_json(capsys, ["whoami", pair["access_token"]])
        assert me["id"] == user["id"]

        rotated = _run_json(capsys, ["refresh", pair["refresh_token"]])
        assert rotated["access_token"] != pair["access_token"]

    def test_bad_login_exits_1_with_generic_message(self, capsys: pytest.CaptureFixture) -> None:
        _run_json(capsys, ["register", "alice", "--password", "s3cret"])
        assert run(["login", "alice", "--password", "nope"]) == 1
        wrong_password = capsys.readouterr().err
        assert run(["login", "bob", "--password", "nope"]) == 1
        unknown_user = capsys.readouterr().err
        assert wrong_password == unknown_user == "error: Invalid credentials.\n"

    def test_empty_password_exits_2(self, capsys: pytest.CaptureFixture) -> None:
        assert run(["register", "alice", "--password", ""]) == 2
        assert "Password is required" in capsys.readouterr().err

    def test_duplicate_register_exits_1(self, capsys: pytest.CaptureFixture) -> None:
        _run_json(capsys, ["register", "alice", "--password", "s3cret"])
        assert run(["register", "alice", "--password", "other"]) == 1
        assert "already exists" in capsys.readouterr().err

    def test_whoami_rejects_garbage(self, capsys: pytest.CaptureFixture) -> None:
        assert run(["whoami", "not.a.token"]) == 1
        assert capsys.readouterr().err == "error: Invalid credentials.\n"

    def test_missing_secret_exits_2(self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
        monkeypatch.delenv("JWT_SECRET")
        get_settings.cache_clear()
        assert run(["login", "alice", "--password", "x"]) == 2
        assert "JWT_SECRET" in capsys.readouterr().err

    def test_password_prompted_when_omitted(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
    ) -> None:
        monkeypatch.setattr("getpass.getpass", lambda prompt="": "s3cret")
        user = _run_json(capsys, ["register", "alice"])
        assert user["username"] == "alice"

    def test_whoami_uses_the_service_clock(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
    ) -> None:
        clock = FrozenClock()
        monkeypatch.setattr(
            main, "build_auth_service", lambda settings, store: build_auth_service(settings, store, clock=clock)
        )
        _run_json(capsys, ["register", "alice", "--password", "s3cret"])
        pair = _run_json(capsys, ["login", "alice", "--password", "s3cret"])

        clock.advance(timedelta(minutes=14))
        assert _run_json(capsys, ["whoami", pair["access_token"]])["username"] == "alice"

        clock.advance(timedelta(minutes=2))
        assert run(["whoami", pair["access_token"]]) == 1
        assert capsys.readouterr().err == "error: Invalid credentials.\n"
