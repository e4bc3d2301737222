import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

# Load a local .env file if present.
load_dotenv()


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    Values are read from the environment when the Config is built, so tests
    (and scripts) can adjust os.environ before calling load_config().
    """

    # -----------------
    # Core
    # -----------------
    DB_PATH: str = field(default_factory=lambda: _env("LEGISLATE_DB_PATH", "./data/legislate.sqlite"))

    # -----------------
    # Auth (JWT)
    # -----------------
    # When unset, a random secret is generated on first startup and appended to AUTH_ENV_FILE
    # so restarts keep issuing/accepting the same tokens.
    AUTH_JWT_SECRET: str = field(default_factory=lambda: _env("AUTH_JWT_SECRET"))
    AUTH_ENV_FILE: str = field(default_factory=lambda: _env("AUTH_ENV_FILE", ".env"))
    AUTH_TOKEN_EXPIRE_MINUTES: int = field(default_factory=lambda: _env_int("AUTH_TOKEN_EXPIRE_MINUTES", 60))
    AUTH_MIN_PASSWORD_LENGTH: int = field(default_factory=lambda: _env_int("AUTH_MIN_PASSWORD_LENGTH", 8))

    # TOTP (second factor for admin / ngo / lawyer)
    AUTH_TOTP_ISSUER: str = field(default_factory=lambda: _env("AUTH_TOTP_ISSUER", "Legislate AI"))
    # Accepted drift in 30s steps on either side of "now".
    AUTH_TOTP_VALID_WINDOW: int = field(default_factory=lambda: _env_int("AUTH_TOTP_VALID_WINDOW", 2))

    # Default admin seeded on first boot when no admin exists.
    # It starts without TOTP; /auth/admin/setup-totp enables the second factor.
    AUTH_BOOTSTRAP_ADMIN_NAME: str = field(default_factory=lambda: _env("AUTH_BOOTSTRAP_ADMIN_NAME", "admin"))
    AUTH_BOOTSTRAP_ADMIN_UID: str = field(default_factory=lambda: _env("AUTH_BOOTSTRAP_ADMIN_UID", "1000"))
    AUTH_BOOTSTRAP_ADMIN_EMAIL: str = field(
        default_factory=lambda: _env("AUTH_BOOTSTRAP_ADMIN_EMAIL", "admin@legislate.local")
    )
    AUTH_BOOTSTRAP_ADMIN_PASSWORD: str = field(default_factory=lambda: _env("AUTH_BOOTSTRAP_ADMIN_PASSWORD", "admin"))

    # -----------------
    # CORS (development)
    # -----------------
    # Vite dev server on :5173 (or CRA on :3000) -> API on :8000.
    CORS_ALLOW_ORIGINS: str = field(
        default_factory=lambda: _env(
            "CORS_ALLOW_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000",
        )
    )

    # Print one line per request-level error (useful while developing the SPA).
    DEBUG_ERRORS: bool = field(default_factory=lambda: _env_bool("DEBUG_ERRORS", False) is True)


def load_config() -> Config:
    return Config()
