import threading
import time
from datetime import datetime, timedelta, timezone

import jwt
import pyotp
import pytest
from dotenv import dotenv_values

from legislate.auth.security import (
    TokenSigner,
    generate_totp_secret,
    hash_password,
    verify_password,
    verify_totp,
)
from legislate.models import Individual, Lawyer, Status


def _individual(user_id: int = 7) -> Individual:
    return Individual(
        id=user_id,
        status=Status.VERIFIED,
        name="Asha",
        contact_number="9990001111",
        created_at="2024-01-01T00:00:00Z",
    )


# -----------------------------
# Passwords
# -----------------------------


def test_hash_and_verify_password():
    hashed = hash_password("s3cret-pass")
    assert hashed != "s3cret-pass"
    assert verify_password("s3cret-pass", hashed)
    assert not verify_password("wrong", hashed)


def test_hashes_are_salted():
    assert hash_password("same-password") != hash_password("same-password")


def test_blank_inputs_never_verify():
    hashed = hash_password("s3cret-pass")
    assert not verify_password("", hashed)
    assert not verify_password("s3cret-pass", None)
    assert not verify_password("s3cret-pass", "")


def test_malformed_hash_does_not_raise():
    assert not verify_password("s3cret-pass", "not-a-passlib-hash")


def test_hash_blank_password_rejected():
    with pytest.raises(ValueError):
        hash_password("")


# -----------------------------
# TOTP
# -----------------------------


def test_generate_totp_secret_enrollment_artifacts():
    enrollment = generate_totp_secret("NGO Helping Hands", issuer="Legislate AI")
    assert len(enrollment.base32) >= 16
    assert enrollment.otpauth_url.startswith("otpauth://totp/")
    assert "issuer=Legislate%20AI" in enrollment.otpauth_url
    assert enrollment.qr_code.startswith("data:image/png;base64,")

    d = enrollment.to_dict()
    assert set(d) == {"base32", "otpauthUrl", "qrCode"}


def test_each_enrollment_gets_a_fresh_secret():
    a = generate_totp_secret("x", issuer="Legislate AI")
    b = generate_totp_secret("x", issuer="Legislate AI")
    assert a.base32 != b.base32


def test_verify_totp_accepts_current_code():
    secret = pyotp.random_base32()
    assert verify_totp(pyotp.TOTP(secret).now(), secret)


def test_verify_totp_tolerates_two_steps_of_drift():
    secret = pyotp.random_base32()
    totp = pyotp.TOTP(secret)
    now = time.time()
    assert verify_totp(totp.at(now - 60), secret, valid_window=2)
    assert verify_totp(totp.at(now + 60), secret, valid_window=2)


def test_verify_totp_rejects_codes_outside_window():
    secret = pyotp.random_base32()
    old = pyotp.TOTP(secret).at(time.time() - 180)
    # Guard against the (tiny) chance that the old code equals a code in the window.
    window = {pyotp.TOTP(secret).at(time.time() + 30 * k) for k in range(-2, 3)}
    if old in window:
        pytest.skip("code collision")
    assert not verify_totp(old, secret, valid_window=2)


def test_verify_totp_rejects_blank_and_missing_secret():
    secret = pyotp.random_base32()
    assert not verify_totp("", secret)
    assert not verify_totp(None, secret)
    assert not verify_totp("123456", None)


# -----------------------------
# Tokens
# -----------------------------


def test_sign_and_verify_token_claims():
    signer = TokenSigner(secret="unit-test-secret-" + "x" * 40, expires_minutes=60)
    token = signer.sign(_individual())
    claims = signer.verify(token)

    assert claims["sub"] == "7"
    assert claims["role"] == "individual"
    assert claims["status"] == "verified"
    assert claims["exp"] - claims["iat"] == 3600


def test_token_snapshots_status_at_issuance():
    signer = TokenSigner(secret="unit-test-secret-" + "x" * 40)
    pending = Lawyer(
        id=3,
        status=Status.PENDING,
        name="R. Mehta",
        enrollment_number="D/1/2019",
        contact_number="98765",
        email=None,
        created_at="2024-01-01T00:00:00Z",
    )
    assert signer.verify(signer.sign(pending))["status"] == "pending"


def test_expired_token_is_rejected():
    secret = "unit-test-secret-" + "x" * 40
    signer = TokenSigner(secret=secret)
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    token = jwt.encode(
        {"sub": "1", "role": "individual", "status": "verified", "exp": int((past + timedelta(hours=1)).timestamp())},
        secret,
        algorithm="HS256",
    )
    with pytest.raises(jwt.ExpiredSignatureError):
        signer.verify(token)


def test_token_signed_with_other_secret_is_rejected():
    a = TokenSigner(secret="secret-a-" + "x" * 40)
    b = TokenSigner(secret="secret-b-" + "x" * 40)
    with pytest.raises(jwt.InvalidTokenError):
        b.verify(a.sign(_individual()))


def test_blank_token_is_rejected():
    with pytest.raises(jwt.InvalidTokenError):
        TokenSigner(secret="s" * 48).verify("")


# -----------------------------
# Signing secret lifecycle
# -----------------------------


def test_ensure_secret_generates_and_persists(tmp_path, monkeypatch):
    monkeypatch.setenv("AUTH_JWT_SECRET", "")
    env_file = tmp_path / "conf" / ".env"

    signer = TokenSigner(secret="", env_file=str(env_file))
    secret = signer.ensure_secret()

    # 48 random bytes, hex encoded.
    assert len(secret) == 96
    assert dotenv_values(env_file)["AUTH_JWT_SECRET"] == secret
    assert signer.ensure_secret() == secret


def test_ensure_secret_is_reused_across_restarts(tmp_path, monkeypatch):
    monkeypatch.setenv("AUTH_JWT_SECRET", "")
    env_file = tmp_path / ".env"

    first = TokenSigner(secret="", env_file=str(env_file))
    token = first.sign(_individual())

    # A new process: os.environ no longer has the generated value, the file does.
    monkeypatch.setenv("AUTH_JWT_SECRET", "")
    second = TokenSigner(secret="", env_file=str(env_file))
    assert second.ensure_secret() == first.ensure_secret()
    assert second.verify(token)["sub"] == "7"


def test_ensure_secret_concurrent_first_use_creates_one_secret(tmp_path, monkeypatch):
    monkeypatch.setenv("AUTH_JWT_SECRET", "")
    env_file = tmp_path / ".env"
    signer = TokenSigner(secret="", env_file=str(env_file))

    barrier = threading.Barrier(8)
    results = []

    def worker():
        barrier.wait()
        results.append(signer.ensure_secret())

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(set(results)) == 1
    lines = [ln for ln in env_file.read_text().splitlines() if ln.startswith("AUTH_JWT_SECRET")]
    assert len(lines) == 1


def test_configured_secret_wins_and_nothing_is_written(tmp_path):
    env_file = tmp_path / ".env"
    signer = TokenSigner(secret="configured-" + "x" * 40, env_file=str(env_file))
    assert signer.ensure_secret() == "configured-" + "x" * 40
    assert not env_file.exists()
