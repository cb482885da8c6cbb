"""SQLite database for LMeve users, corporations and login state."""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator

from cryptography.fernet import Fernet

from .auth.exceptions import CorporationAlreadyRegisteredError
from .auth.models import AuthMethod, CorporationConfig, User
from .auth.roles import Role
from .esi.models import AuthState
from .esi.scopes import ScopeType

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path("lmeve.db")


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class Database:
    """SQLite database manager for LMeve."""

    def __init__(self, path: Path | str = DEFAULT_DB_PATH):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._init_db()
        self._fernet = Fernet(self.get_or_create_encryption_key())

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._connect() as conn:
            conn.executescript("""
                -- Users (manual and ESI)
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    username TEXT UNIQUE,
                    character_id INTEGER UNIQUE,
                    character_name TEXT,
                    corporation_id INTEGER,
                    corporation_name TEXT,
                    alliance_id INTEGER,
                    alliance_name TEXT,
                    auth_method TEXT NOT NULL,
                    role TEXT NOT NULL,
                    access_token TEXT,
                    refresh_token_encrypted TEXT,
                    token_expiry TEXT,
                    scopes TEXT DEFAULT '',
                    last_login TEXT NOT NULL,
                    session_expiry TEXT NOT NULL,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_date TEXT NOT NULL,
                    created_by TEXT,
                    updated_date TEXT NOT NULL,
                    updated_by TEXT
                );

                -- Manual login credentials (bcrypt hashes)
                CREATE TABLE IF NOT EXISTS user_credentials (
                    username TEXT PRIMARY KEY,
                    password_hash TEXT NOT NULL
                );

                -- Registered corporations
                CREATE TABLE IF NOT EXISTS corporations (
                    corporation_id INTEGER PRIMARY KEY,
                    corporation_name TEXT NOT NULL,
                    registered_scopes TEXT NOT NULL DEFAULT '[]',
                    is_active INTEGER NOT NULL DEFAULT 1,
                    registration_date TEXT NOT NULL,
                    last_token_refresh TEXT
                );

                -- In-flight SSO login, one per browser session
                CREATE TABLE IF NOT EXISTS auth_states (
                    session_id TEXT PRIMARY KEY,
                    state TEXT NOT NULL,
                    code_verifier TEXT NOT NULL,
                    code_challenge TEXT NOT NULL,
                    timestamp REAL NOT NULL,
                    scope_type TEXT NOT NULL,
                    scopes TEXT NOT NULL DEFAULT ''
                );

                -- Browser session -> signed-in user
                CREATE TABLE IF NOT EXISTS browser_sessions (
                    session_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL
                );

                -- Token encryption key (single-row table)
                CREATE TABLE IF NOT EXISTS esi_encryption (
                    id INTEGER PRIMARY KEY CHECK(id = 1),
                    fernet_key TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_users_corporation ON users(corporation_id);
                CREATE INDEX IF NOT EXISTS idx_sessions_user ON browser_sessions(user_id);
            """)
            logger.info("Database initialized at %s", self.path)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections."""
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # Auth State Methods

    def save_auth_state(self, session_id: str, auth_state: AuthState) -> None:
        """Store the in-flight login for a browser session, replacing any previous one."""
        with self._connect() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO auth_states
                (session_id, state, code_verifier, code_challenge, timestamp, scope_type, scopes)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                session_id,
                auth_state.state,
                auth_state.code_verifier,
                auth_state.code_challenge,
                auth_state.timestamp,
                auth_state.scope_type.value,
                " ".join(auth_state.scopes),
            ))

    def pop_auth_state(self, session_id: str) -> AuthState | None:
        """Fetch and delete the in-flight login for a browser session."""
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM auth_states WHERE session_id = ?", (session_id,)
            ).fetchone()
            if row is None:
                return None

            conn.execute("DELETE FROM auth_states WHERE session_id = ?", (session_id,))
            return AuthState(
                state=row["state"],
                code_verifier=row["code_verifier"],
                code_challenge=row["code_challenge"],
                timestamp=row["timestamp"],
                scope_type=ScopeType(row["scope_type"]),
                scopes=row["scopes"].split() if row["scopes"] else [],
            )

    # User Methods

    def _row_to_user(self, row: sqlite3.Row) -> User:
        refresh_token = None
        if row["refresh_token_encrypted"]:
            refresh_token = self._fernet.decrypt(row["refresh_token_encrypted"].encode()).decode()

        return User(
            id=row["id"],
            username=row["username"],
            character_id=row["character_id"],
            character_name=row["character_name"],
            corporation_id=row["corporation_id"],
            corporation_name=row["corporation_name"],
            alliance_id=row["alliance_id"],
            alliance_name=row["alliance_name"],
            auth_method=AuthMethod(row["auth_method"]),
            role=Role(row["role"]),
            access_token=row["access_token"],
            refresh_token=refresh_token,
            token_expiry=_dt(row["token_expiry"]),
            scopes=row["scopes"].split() if row["scopes"] else [],
            last_login=_dt(row["last_login"]),
            session_expiry=_dt(row["session_expiry"]),
            is_active=bool(row["is_active"]),
            created_date=_dt(row["created_date"]),
            created_by=row["created_by"],
            updated_date=_dt(row["updated_date"]),
            updated_by=row["updated_by"],
        )

    def save_user(self, user: User) -> None:
        """
        Save or update a user. The refresh token is encrypted at rest.

        Raises:
            sqlite3.IntegrityError: If another user already holds the
                username or character
        """
        encrypted_refresh = None
        if user.refresh_token:
            encrypted_refresh = self._fernet.encrypt(user.refresh_token.encode()).decode()

        with self._connect() as conn:
            conn.execute("""
                INSERT INTO users
                (id, username, character_id, character_name, corporation_id, corporation_name,
                 alliance_id, alliance_name, auth_method, role, access_token,
                 refresh_token_encrypted, token_expiry, scopes, last_login, session_expiry,
                 is_active, created_date, created_by, updated_date, updated_by)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    username = excluded.username,
                    character_id = excluded.character_id,
                    character_name = excluded.character_name,
                    corporation_id = excluded.corporation_id,
                    corporation_name = excluded.corporation_name,
                    alliance_id = excluded.alliance_id,
                    alliance_name = excluded.alliance_name,
                    auth_method = excluded.auth_method,
                    role = excluded.role,
                    access_token = excluded.access_token,
                    refresh_token_encrypted = excluded.refresh_token_encrypted,
                    token_expiry = excluded.token_expiry,
                    scopes = excluded.scopes,
                    last_login = excluded.last_login,
                    session_expiry = excluded.session_expiry,
                    is_active = excluded.is_active,
                    created_date = excluded.created_date,
                    created_by = excluded.created_by,
                    updated_date = excluded.updated_date,
                    updated_by = excluded.updated_by
            """, (
                user.id,
                user.username,
                user.character_id,
                user.character_name,
                user.corporation_id,
                user.corporation_name,
                user.alliance_id,
                user.alliance_name,
                user.auth_method.value,
                user.role.value,
                user.access_token,
                encrypted_refresh,
                _iso(user.token_expiry),
                " ".join(user.scopes),
                _iso(user.last_login),
                _iso(user.session_expiry),
                int(user.is_active),
                _iso(user.created_date),
                user.created_by,
                _iso(user.updated_date),
                user.updated_by,
            ))

    def get_user(self, user_id: str) -> User | None:
        """Get a user by id."""
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return self._row_to_user(row) if row else None

    def get_user_by_username(self, username: str) -> User | None:
        """Get a manual user by username."""
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
            return self._row_to_user(row) if row else None

    def get_user_by_character(self, character_id: int) -> User | None:
        """Get an ESI user by character id."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE character_id = ?", (character_id,)
            ).fetchone()
            return self._row_to_user(row) if row else None

    def get_all_users(self) -> list[User]:
        """Get all users."""
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY created_date").fetchall()
            return [self._row_to_user(row) for row in rows]

    def count_users(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]

    def delete_user(self, user_id: str) -> None:
        """Delete a user, their credentials and their browser sessions."""
        with self._connect() as conn:
            row = conn.execute("SELECT username FROM users WHERE id = ?", (user_id,)).fetchone()
            if row and row["username"]:
                conn.execute("DELETE FROM user_credentials WHERE username = ?", (row["username"],))
            conn.execute("DELETE FROM browser_sessions WHERE user_id = ?", (user_id,))
            conn.execute("DELETE FROM users WHERE id = ?", (user_id,))

    def delete_users_by_corporation(self, corporation_id: int) -> int:
        """Delete every user of a corporation. Returns the number removed."""
        with self._connect() as conn:
            conn.execute("""
                DELETE FROM browser_sessions WHERE user_id IN
                (SELECT id FROM users WHERE corporation_id = ?)
            """, (corporation_id,))
            cursor = conn.execute("DELETE FROM users WHERE corporation_id = ?", (corporation_id,))
            return cursor.rowcount

    # Credential Methods

    def set_password_hash(self, username: str, password_hash: str) -> None:
        with self._connect() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO user_credentials (username, password_hash)
                VALUES (?, ?)
            """, (username, password_hash))

    def get_password_hash(self, username: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT password_hash FROM user_credentials WHERE username = ?", (username,)
            ).fetchone()
            return row["password_hash"] if row else None

    # Corporation Methods

    def _row_to_corporation(self, row: sqlite3.Row) -> CorporationConfig:
        return CorporationConfig(
            corporation_id=row["corporation_id"],
            corporation_name=row["corporation_name"],
            registered_scopes=json.loads(row["registered_scopes"]),
            is_active=bool(row["is_active"]),
            registration_date=_dt(row["registration_date"]),
            last_token_refresh=_dt(row["last_token_refresh"]),
        )

    def _corporation_params(self, config: CorporationConfig) -> tuple:
        return (
            config.corporation_id,
            config.corporation_name,
            json.dumps(config.registered_scopes),
            int(config.is_active),
            _iso(config.registration_date),
            _iso(config.last_token_refresh),
        )

    def get_registered_corporations(self) -> list[CorporationConfig]:
        """Get all corporation registrations, active or not."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM corporations ORDER BY registration_date"
            ).fetchall()
            return [self._row_to_corporation(row) for row in rows]

    def get_corporation(self, corporation_id: int) -> CorporationConfig | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM corporations WHERE corporation_id = ?", (corporation_id,)
            ).fetchone()
            return self._row_to_corporation(row) if row else None

    def add_corporation(self, config: CorporationConfig) -> None:
        """
        Register a new corporation.

        Raises:
            CorporationAlreadyRegisteredError: If the id is already present
        """
        try:
            with self._connect() as conn:
                conn.execute("""
                    INSERT INTO corporations
                    (corporation_id, corporation_name, registered_scopes, is_active,
                     registration_date, last_token_refresh)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, self._corporation_params(config))
        except sqlite3.IntegrityError:
            raise CorporationAlreadyRegisteredError(
                f"Corporation {config.corporation_id} is already registered"
            ) from None

    def register_corporation_if_absent(self, config: CorporationConfig) -> bool:
        """Insert a registration unless one exists. Returns True if inserted."""
        with self._lock, self._connect() as conn:
            cursor = conn.execute("""
                INSERT OR IGNORE INTO corporations
                (corporation_id, corporation_name, registered_scopes, is_active,
                 registration_date, last_token_refresh)
                VALUES (?, ?, ?, ?, ?, ?)
            """, self._corporation_params(config))
            return cursor.rowcount == 1

    def save_corporation(self, config: CorporationConfig) -> None:
        """Save or update a corporation registration."""
        with self._connect() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO corporations
                (corporation_id, corporation_name, registered_scopes, is_active,
                 registration_date, last_token_refresh)
                VALUES (?, ?, ?, ?, ?, ?)
            """, self._corporation_params(config))

    def delete_corporation(self, corporation_id: int) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM corporations WHERE corporation_id = ?", (corporation_id,))

    # Browser Session Methods

    def set_session_user(self, session_id: str, user_id: str) -> None:
        """Bind a browser session to a signed-in user."""
        with self._connect() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO browser_sessions (session_id, user_id)
                VALUES (?, ?)
            """, (session_id, user_id))

    def get_session_user_id(self, session_id: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT user_id FROM browser_sessions WHERE session_id = ?", (session_id,)
            ).fetchone()
            return row["user_id"] if row else None

    def clear_session(self, session_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM browser_sessions WHERE session_id = ?", (session_id,))

    def clear_sessions_for_corporation(self, corporation_id: int) -> int:
        """Sign out every browser session of a corporation's users."""
        with self._connect() as conn:
            cursor = conn.execute("""
                DELETE FROM browser_sessions WHERE user_id IN
                (SELECT id FROM users WHERE corporation_id = ?)
            """, (corporation_id,))
            return cursor.rowcount

    # Encryption Key

    def get_or_create_encryption_key(self) -> bytes:
        """Get or create the Fernet key used for refresh tokens at rest."""
        with self._connect() as conn:
            row = conn.execute("SELECT fernet_key FROM esi_encryption WHERE id = 1").fetchone()

            if row is not None:
                return row["fernet_key"].encode()

            # Generate new key
            key = Fernet.generate_key()
            conn.execute(
                "INSERT INTO esi_encryption (id, fernet_key) VALUES (1, ?)",
                (key.decode(),)
            )
            logger.info("Generated new token encryption key")
            return key
