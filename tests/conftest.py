"""
Legislate - test configuration and fixtures.

Every test gets its own SQLite file and app instance; the default admin is
seeded by the app's startup hook.
"""
from typing import Any, Callable, Dict, Iterator, Tuple

import pyotp
import pytest
from fastapi.testclient import TestClient

from legislate.api.server import create_app
from legislate.config import Config

TEST_JWT_SECRET = "test-jwt-secret-key-for-testing-only-0123456789abcdef"
ADMIN_PASSWORD = "admin-pass-123"


@pytest.fixture
def cfg(tmp_path) -> Config:
    return Config(
        DB_PATH=str(tmp_path / "legislate-test.sqlite"),
        AUTH_JWT_SECRET=TEST_JWT_SECRET,
        AUTH_ENV_FILE=str(tmp_path / ".env"),
        AUTH_TOKEN_EXPIRE_MINUTES=60,
        AUTH_MIN_PASSWORD_LENGTH=8,
        AUTH_TOTP_ISSUER="Legislate AI",
        AUTH_TOTP_VALID_WINDOW=2,
        AUTH_BOOTSTRAP_ADMIN_NAME="admin",
        AUTH_BOOTSTRAP_ADMIN_UID="1000",
        AUTH_BOOTSTRAP_ADMIN_EMAIL="admin@legislate.local",
        AUTH_BOOTSTRAP_ADMIN_PASSWORD=ADMIN_PASSWORD,
        CORS_ALLOW_ORIGINS="",
    )


@pytest.fixture
def client(cfg: Config) -> Iterator[TestClient]:
    """Test client; entering the context runs startup (schema, secret, default admin)."""
    with TestClient(create_app(cfg)) as c:
        yield c


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def as_bearer() -> Callable[[str], Dict[str, str]]:
    return bearer


@pytest.fixture
def admin_headers(client: TestClient) -> Dict[str, str]:
    """Default admin session (TOTP not configured yet, so no OTP needed)."""
    r = client.post("/auth/admin/login", json={"adminname": "admin", "password": ADMIN_PASSWORD})
    assert r.status_code == 200, r.text
    return bearer(r.json()["token"])


@pytest.fixture
def make_individual(client: TestClient) -> Callable[..., Tuple[Dict[str, str], Dict[str, Any]]]:
    def _make(name: str = "Asha", contact_number: str = "9990001111", password: str = "p@ss1234"):
        r = client.post(
            "/auth/individual/register",
            json={"name": name, "contactNumber": contact_number, "password": password},
        )
        assert r.status_code == 201, r.text
        body = r.json()
        return bearer(body["token"]), body["user"]

    return _make


@pytest.fixture
def make_ngo(client: TestClient) -> Callable[..., Tuple[Dict[str, Any], str]]:
    """Register an NGO; returns (user, base32 TOTP secret)."""

    def _make(registration_number: str = "REG-001", name: str = "Helping Hands", email: str = "b@ngo.org"):
        r = client.post(
            "/auth/ngo/register",
            json={"registrationNumber": registration_number, "name": name, "email": email},
        )
        assert r.status_code == 201, r.text
        body = r.json()
        return body["user"], body["totp"]["base32"]

    return _make


@pytest.fixture
def make_lawyer(client: TestClient) -> Callable[..., Tuple[Dict[str, Any], str]]:
    """Register a lawyer; returns (user, base32 TOTP secret)."""

    def _make(
        name: str = "R. Mehta",
        enrollment_number: str = "D/1234/2019",
        email: str = "mehta@law.in",
        contact_number: str = "9876500000",
    ):
        r = client.post(
            "/auth/lawyer/register",
            json={
                "name": name,
                "enrollmentNumber": enrollment_number,
                "email": email,
                "contactNumber": contact_number,
            },
        )
        assert r.status_code == 201, r.text
        body = r.json()
        return body["user"], body["totp"]["base32"]

    return _make


@pytest.fixture
def set_status(client: TestClient, admin_headers: Dict[str, str]) -> Callable[[int, str], Dict[str, Any]]:
    def _set(user_id: int, action: str = "verified") -> Dict[str, Any]:
        r = client.post("/admin/verify", json={"userId": user_id, "action": action}, headers=admin_headers)
        assert r.status_code == 200, r.text
        return r.json()["user"]

    return _set


@pytest.fixture
def verified_ngo(client: TestClient, make_ngo, set_status) -> Callable[..., Tuple[Dict[str, str], Dict[str, Any]]]:
    """Register, verify and log in an NGO; returns (headers, user)."""

    def _make(registration_number: str = "REG-001", name: str = "Helping Hands", email: str = "b@ngo.org"):
        user, secret = make_ngo(registration_number=registration_number, name=name, email=email)
        set_status(user["id"], "verified")
        r = client.post(
            "/auth/ngo/login",
            json={"registrationNumber": registration_number, "otp": pyotp.TOTP(secret).now()},
        )
        assert r.status_code == 200, r.text
        return bearer(r.json()["token"]), r.json()["user"]

    return _make


@pytest.fixture
def verified_lawyer(client: TestClient, make_lawyer, set_status) -> Callable[..., Tuple[Dict[str, str], Dict[str, Any]]]:
    def _make(
        name: str = "R. Mehta",
        enrollment_number: str = "D/1234/2019",
        email: str = "mehta@law.in",
        contact_number: str = "9876500000",
    ):
        user, secret = make_lawyer(
            name=name,
            enrollment_number=enrollment_number,
            email=email,
            contact_number=contact_number,
        )
        set_status(user["id"], "verified")
        r = client.post(
            "/auth/lawyer/login",
            json={"contactNumber": contact_number, "otp": pyotp.TOTP(secret).now()},
        )
        assert r.status_code == 200, r.text
        return bearer(r.json()["token"]), r.json()["user"]

    return _make
