from __future__ import annotations

import base64
import io
import os
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import jwt
import pyotp
import qrcode
from dotenv import dotenv_values, set_key
from passlib.context import CryptContext

from legislate.config import Config
from legislate.models import User


_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
_JWT_ALG = "HS256"
_SECRET_ENV_KEY = "AUTH_JWT_SECRET"


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


# -----------------------------
# Passwords
# -----------------------------


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("password_blank")
    return _pwd.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _pwd.verify(password, password_hash)
    except (ValueError, TypeError):
        # Malformed / unknown hash format.
        return False


# -----------------------------
# TOTP
# -----------------------------


@dataclass(frozen=True)
class TotpEnrollment:
    """What a user needs to enroll an authenticator app."""

    base32: str
    otpauth_url: str
    qr_code: str  # data:image/png;base64,...

    def to_dict(self) -> Dict[str, str]:
        return {"base32": self.base32, "otpauthUrl": self.otpauth_url, "qrCode": self.qr_code}


def _qr_data_url(text: str) -> str:
    img = qrcode.make(text)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def generate_totp_secret(label: str, *, issuer: str) -> TotpEnrollment:
    secret = pyotp.random_base32()
    uri = pyotp.TOTP(secret).provisioning_uri(name=label, issuer_name=issuer)
    return TotpEnrollment(base32=secret, otpauth_url=uri, qr_code=_qr_data_url(uri))


def verify_totp(code: Optional[str], secret: Optional[str], *, valid_window: int = 2) -> bool:
    """Check a 6-digit code against the secret, tolerating `valid_window` 30s steps of drift."""
    c = (code or "").strip().replace(" ", "")
    if not c or not secret:
        return False
    return pyotp.TOTP(secret).verify(c, valid_window=max(0, int(valid_window)))


# -----------------------------
# Session tokens (JWT)
# -----------------------------


class TokenSigner:
    """Signs and verifies session tokens with the process-wide secret.

    One instance is built per application and its secret is resolved at startup
    (`ensure_secret`), before any request is served. If no secret is configured,
    one is generated and persisted to the env file so restarts reuse it.
    """

    def __init__(self, *, secret: str = "", env_file: str = ".env", expires_minutes: int = 60):
        self._secret: Optional[str] = (secret or "").strip() or None
        self._env_file = env_file
        self._expires_minutes = max(1, int(expires_minutes))
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, cfg: Config) -> "TokenSigner":
        return cls(
            secret=cfg.AUTH_JWT_SECRET,
            env_file=cfg.AUTH_ENV_FILE,
            expires_minutes=cfg.AUTH_TOKEN_EXPIRE_MINUTES,
        )

    @property
    def expires_minutes(self) -> int:
        return self._expires_minutes

    def ensure_secret(self) -> str:
        if self._secret:
            return self._secret
        with self._lock:
            # Another thread may have won the race while we waited.
            if self._secret:
                return self._secret

            existing = (os.environ.get(_SECRET_ENV_KEY) or "").strip()
            path = Path(self._env_file)
            if not existing and path.exists():
                existing = (dotenv_values(path).get(_SECRET_ENV_KEY) or "").strip()
            if existing:
                self._secret = existing
                return existing

            secret = secrets.token_hex(48)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.touch(exist_ok=True)
            set_key(str(path), _SECRET_ENV_KEY, secret, quote_mode="never")
            os.environ[_SECRET_ENV_KEY] = secret
            _debug(f"Generated JWT signing secret; persisted to {path}")
            self._secret = secret
            return secret

    def sign(self, user: User) -> str:
        now = datetime.now(timezone.utc)
        exp = now + timedelta(minutes=self._expires_minutes)
        payload: Dict[str, Any] = {
            "sub": str(user.id),
            "role": user.role.value,
            "status": user.status.value,
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
        }
        return jwt.encode(payload, self.ensure_secret(), algorithm=_JWT_ALG)

    def verify(self, token: str) -> Dict[str, Any]:
        """Decode a token. Raises jwt.ExpiredSignatureError / jwt.InvalidTokenError."""
        if not token:
            raise jwt.InvalidTokenError("token_blank")
        return jwt.decode(token, self.ensure_secret(), algorithms=[_JWT_ALG])
