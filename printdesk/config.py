"""Configuration and durable settings storage for PrintDesk."""

from __future__ import annotations

import os
import sqlite3
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import jwt
import keyring
from keyring.errors import KeyringError

KEYRING_SERVICE = "printdesk"
AUTH_TOKEN_KEY = "auth_token"

DEFAULT_API_URL = "http://localhost:5081"
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_PAYWALL_ROUTE = "/renovar-suscripcion"
DEFAULT_LOGIN_ROUTE = "/login"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_DB_PATH = "./data/printdesk.db"


@dataclass
class AppConfig:
    """Runtime configuration for the subscription core and its API client."""

    api_url: str = DEFAULT_API_URL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    paywall_route: str = DEFAULT_PAYWALL_ROUTE
    login_route: str = DEFAULT_LOGIN_ROUTE
    log_level: str = DEFAULT_LOG_LEVEL

    auth_token: Optional[str] = field(default=None, repr=False)


class ConfigStore:
    """SQLite-based key-value storage, persisted across sessions."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_tables()

    def _init_tables(self) -> None:
        cursor = self.conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        self.conn.commit()

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get a setting value by key."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT value FROM settings WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row["value"] if row else default

    def set(self, key: str, value: str) -> None:
        """Set a setting value."""
        cursor = self.conn.cursor()
        cursor.execute("""
            INSERT INTO settings (key, value, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = CURRENT_TIMESTAMP
        """, (key, value))
        self.conn.commit()

    def delete(self, key: str) -> None:
        """Delete a setting."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM settings WHERE key = ?", (key,))
        self.conn.commit()

    def get_all(self) -> dict[str, str]:
        """Get all settings."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT key, value FROM settings")
        return {row["key"]: row["value"] for row in cursor.fetchall()}

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()


_config_store: Optional[ConfigStore] = None


def _get_config_store() -> ConfigStore:
    """Get or create the global config store."""
    global _config_store
    if _config_store is None:
        _config_store = ConfigStore(os.environ.get("PRINTDESK_DB_PATH", DEFAULT_DB_PATH))
    return _config_store


def _set_config_store(store: Optional[ConfigStore]) -> None:
    """Replace the global config store (used by tests and the CLI)."""
    global _config_store
    _config_store = store


def get_config() -> AppConfig:
    """Load configuration from environment, then stored settings, then defaults."""
    store = _get_config_store()

    def _setting(env_var: str, key: str, default: str) -> str:
        return os.environ.get(env_var) or store.get(key, default)

    config = AppConfig(
        api_url=_setting("PRINTDESK_API_URL", "api_url", DEFAULT_API_URL).rstrip("/"),
        request_timeout=float(
            _setting("PRINTDESK_REQUEST_TIMEOUT", "request_timeout", str(DEFAULT_REQUEST_TIMEOUT))
        ),
        paywall_route=_setting("PRINTDESK_PAYWALL_ROUTE", "paywall_route", DEFAULT_PAYWALL_ROUTE),
        login_route=_setting("PRINTDESK_LOGIN_ROUTE", "login_route", DEFAULT_LOGIN_ROUTE),
        log_level=_setting("PRINTDESK_LOG_LEVEL", "log_level", DEFAULT_LOG_LEVEL).upper(),
    )
    config.auth_token = get_auth_token()

    return config


def save_config(config: AppConfig) -> None:
    """Save configuration to database. The auth token is stored separately."""
    store = _get_config_store()
    store.set("api_url", config.api_url)
    store.set("request_timeout", str(config.request_timeout))
    store.set("paywall_route", config.paywall_route)
    store.set("login_route", config.login_route)
    store.set("log_level", config.log_level)


def get_auth_token() -> Optional[str]:
    """Get the API bearer token from environment, secure storage, or the store."""
    token = os.environ.get("PRINTDESK_AUTH_TOKEN")
    if token:
        return token

    try:
        token = keyring.get_password(KEYRING_SERVICE, AUTH_TOKEN_KEY)
        if token:
            return token
    except KeyringError:
        pass

    return _get_config_store().get(AUTH_TOKEN_KEY)


def save_auth_token(token: str) -> None:
    """Save the API bearer token to secure storage."""
    try:
        keyring.set_password(KEYRING_SERVICE, AUTH_TOKEN_KEY, token)
        return
    except KeyringError:
        pass

    _get_config_store().set(AUTH_TOKEN_KEY, token)


def delete_auth_token() -> None:
    """Delete the API bearer token from every storage location."""
    try:
        keyring.delete_password(KEYRING_SERVICE, AUTH_TOKEN_KEY)
    except KeyringError:
        pass

    _get_config_store().delete(AUTH_TOKEN_KEY)


def get_token_claims(token: Optional[str] = None) -> dict[str, Any]:
    """Decode the token payload without verifying it. Returns {} when undecodable."""
    token = token if token is not None else get_auth_token()
    if not token:
        return {}
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return {}


def is_authenticated(token: Optional[str] = None) -> bool:
    """True when a token exists and, if it carries an expiry, has not expired.

    Opaque (non-JWT) tokens count as authenticated; the backend decides.
    """
    token = token if token is not None else get_auth_token()
    if not token:
        return False

    exp = get_token_claims(token).get("exp")
    if exp is None:
        return True
    return float(exp) > time.time()
