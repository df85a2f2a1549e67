"""
auth/store.py -- SQLAlchemy Core credential store.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. AuthService never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Username uniqueness is enforced by the UNIQUE constraint on users.username,
  not by a read-before-write check. Two concurrent registrations for the same
  name race to the INSERT and exactly one wins; the loser gets ConflictError.

Error contract:
  get_by_username() returns None for "no such user" -- distinguishable from
  a database failure, which raises StorageError. create_user() raises
  ConflictError for a duplicate username and StorageError for anything else.

Layer rule: no imports from core/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import ConflictError, StorageError
from auth.models import User

logger = logging.getLogger("radionica.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),  # UUID4, canonical string form
    Column("username", String(255), nullable=False, unique=True),
    Column("password", Text, nullable=False),  # bcrypt digest
    Column("created_at", String(32), nullable=False),  # ISO 8601, UTC
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Credential store for User entities.

    Usage:
        store = UserStore("sqlite:///radionica_auth.db")
        store.create_user(user)
        user = store.get_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def create_user(self, user: User) -> None:
        """Insert a new user.

        Raises ConflictError if the username already exists, StorageError on
        any other database failure.
        """
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _users.insert().values(
                        id=str(user.id),
                        username=user.username,
                        password=user.password_hash,
                        created_at=user.created_at.astimezone(timezone.utc).isoformat(),
                    )
                )
        except IntegrityError as exc:
            raise ConflictError() from exc
        except SQLAlchemyError as exc:
            logger.error("create_user failed: %s", exc.__class__.__name__)
            raise StorageError() from exc

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        except SQLAlchemyError as exc:
            logger.error("get_by_username failed: %s", exc.__class__.__name__)
            raise StorageError() from exc
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: uuid.UUID) -> User | None:
        """Look up a user by id. Returns None if not found."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.id == str(user_id))).fetchone()
        except SQLAlchemyError as exc:
            logger.error("get_by_id failed: %s", exc.__class__.__name__)
            raise StorageError() from exc
        return _row_to_user(row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=uuid.UUID(row.id),
        username=row.username,
        password_hash=row.password,
        created_at=datetime.fromisoformat(row.created_at),
    )
