"""Role-specific registration and login flows.

Each login either issues a session (`SessionIssued`) or, for an NGO/lawyer that
an admin has not verified yet, reports `PendingVerification`. The pending case is
a normal outcome, not an error, so the client can route to a waiting screen.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from legislate.config import Config
from legislate.errors import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from legislate.models import Admin, Individual, Provider, Role, Status, User, public_user

from . import crud
from .security import TokenSigner, TotpEnrollment, generate_totp_secret, verify_password, verify_totp


@dataclass(frozen=True)
class SessionIssued:
    token: str
    user: User

    def to_dict(self) -> Dict[str, Any]:
        return {"token": self.token, "user": public_user(self.user)}


@dataclass(frozen=True)
class PendingVerification:
    status: Status

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value, "message": "pending_verification"}


LoginResult = Union[SessionIssued, PendingVerification]


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def require_fields(values: Mapping[str, Optional[str]]) -> None:
    """Raise a 400 naming every blank field (keys are the public JSON field names)."""
    missing = [k for k, v in values.items() if not (v or "").strip()]
    if missing:
        raise ValidationError(f"missing_fields: {', '.join(missing)}")


def _check_password_length(cfg: Config, password: Optional[str]) -> None:
    if len(password or "") < cfg.AUTH_MIN_PASSWORD_LENGTH:
        raise ValidationError("password_too_short")


def _check_otp(cfg: Config, otp: Optional[str], secret: Optional[str]) -> None:
    if not verify_totp(otp, secret, valid_window=cfg.AUTH_TOTP_VALID_WINDOW):
        raise AuthenticationError("invalid_otp")


# -----------------------------
# Admin
# -----------------------------


def login_admin(
    conn: Any,
    cfg: Config,
    signer: TokenSigner,
    *,
    adminname: Optional[str],
    password: Optional[str],
    otp: Optional[str] = None,
) -> SessionIssued:
    require_fields({"adminname": adminname, "password": password})

    admin = crud.find_user_by_login_key(conn, Role.ADMIN, adminname or "")
    if admin is None:
        raise NotFoundError("admin_not_found")
    if not verify_password(password or "", admin.password_hash):
        raise AuthenticationError("invalid_credentials")

    # OTP is optional until the admin has configured TOTP, then mandatory.
    if admin.totp_secret:
        if not (otp or "").strip():
            raise ValidationError("otp_required")
        _check_otp(cfg, otp, admin.totp_secret)

    return SessionIssued(token=signer.sign(admin), user=admin)


def setup_admin_totp(conn: Any, cfg: Config, *, uid: Optional[str], password: Optional[str]) -> TotpEnrollment:
    require_fields({"uid": uid, "password": password})

    admin = crud.get_admin_by_uid(conn, uid or "")
    if admin is None:
        raise NotFoundError("admin_not_found")
    if not verify_password(password or "", admin.password_hash):
        raise AuthenticationError("invalid_credentials")
    if admin.totp_secret:
        raise ValidationError("admin_totp_already_configured")

    enrollment = generate_totp_secret(f"{cfg.AUTH_TOTP_ISSUER} Admin", issuer=cfg.AUTH_TOTP_ISSUER)
    # Compare-and-set: a concurrent setup call may have stored a secret since we read the row.
    if not crud.set_totp_secret_if_missing(conn, admin.id, enrollment.base32):
        raise ValidationError("admin_totp_already_configured")
    _debug(f"Configured TOTP for admin id={admin.id}")
    return enrollment


def create_admin_account(
    conn: Any,
    cfg: Config,
    *,
    adminname: Optional[str],
    uid: Optional[str],
    email: Optional[str],
    password: Optional[str],
) -> Tuple[Admin, TotpEnrollment]:
    require_fields({"adminname": adminname, "uid": uid, "email": email, "password": password})
    _check_password_length(cfg, password)

    name = crud.normalize_identifier(adminname)
    enrollment = generate_totp_secret(f"{cfg.AUTH_TOTP_ISSUER} Admin ({name})", issuer=cfg.AUTH_TOTP_ISSUER)
    admin = crud.create_admin(
        conn,
        adminname=name,
        uid=uid or "",
        email=email or "",
        password=password or "",
        totp_secret=enrollment.base32,
    )
    return admin, enrollment


# -----------------------------
# NGO / Lawyer
# -----------------------------


def register_ngo(
    conn: Any,
    cfg: Config,
    *,
    registration_number: Optional[str],
    name: Optional[str],
    email: Optional[str],
) -> Tuple[Provider, TotpEnrollment]:
    require_fields({"registrationNumber": registration_number, "name": name, "email": email})

    enrollment = generate_totp_secret(f"NGO {crud.normalize_identifier(name)}", issuer=cfg.AUTH_TOTP_ISSUER)
    user = crud.create_ngo(
        conn,
        registration_number=registration_number or "",
        name=name or "",
        email=email or "",
        totp_secret=enrollment.base32,
    )
    return user, enrollment


def register_lawyer(
    conn: Any,
    cfg: Config,
    *,
    name: Optional[str],
    enrollment_number: Optional[str],
    email: Optional[str],
    contact_number: Optional[str],
) -> Tuple[Provider, TotpEnrollment]:
    require_fields(
        {
            "name": name,
            "enrollmentNumber": enrollment_number,
            "email": email,
            "contactNumber": contact_number,
        }
    )

    enrollment = generate_totp_secret(f"Lawyer {crud.normalize_identifier(name)}", issuer=cfg.AUTH_TOTP_ISSUER)
    user = crud.create_lawyer(
        conn,
        name=name or "",
        enrollment_number=enrollment_number or "",
        email=email or "",
        contact_number=contact_number or "",
        totp_secret=enrollment.base32,
    )
    return user, enrollment


def login_provider(
    conn: Any,
    cfg: Config,
    signer: TokenSigner,
    *,
    role: Role,
    identifier: Optional[str],
    otp: Optional[str],
) -> LoginResult:
    """NGO (by registration number) or lawyer (by contact number) login.

    Order matters: rejected accounts get a rejection, unverified accounts get the
    pending signal without their OTP being checked, and only verified accounts can
    turn a valid OTP into a token.
    """
    if role not in (Role.NGO, Role.LAWYER):
        raise ValueError(f"not a provider role: {role}")
    key_field = "registrationNumber" if role is Role.NGO else "contactNumber"
    require_fields({key_field: identifier, "otp": otp})

    user = crud.find_user_by_login_key(conn, role, identifier or "")
    if user is None:
        raise NotFoundError(f"{role.value}_not_found")

    if user.status is Status.REJECTED:
        raise AuthorizationError("profile_rejected")
    if user.status is not Status.VERIFIED:
        return PendingVerification(status=user.status)

    _check_otp(cfg, otp, user.totp_secret)
    return SessionIssued(token=signer.sign(user), user=user)


# -----------------------------
# Individual
# -----------------------------


def register_individual(
    conn: Any,
    cfg: Config,
    signer: TokenSigner,
    *,
    name: Optional[str],
    contact_number: Optional[str],
    password: Optional[str],
) -> SessionIssued:
    require_fields({"name": name, "contactNumber": contact_number, "password": password})
    _check_password_length(cfg, password)

    user: Individual = crud.create_individual(
        conn,
        name=name or "",
        contact_number=contact_number or "",
        password=password or "",
    )
    return SessionIssued(token=signer.sign(user), user=user)


def login_individual(
    conn: Any,
    signer: TokenSigner,
    *,
    name: Optional[str],
    password: Optional[str],
) -> SessionIssued:
    require_fields({"name": name, "password": password})

    user = crud.find_user_by_login_key(conn, Role.INDIVIDUAL, name or "")
    if user is None:
        raise NotFoundError("individual_not_found")
    if not verify_password(password or "", user.password_hash):
        raise AuthenticationError("invalid_credentials")

    return SessionIssued(token=signer.sign(user), user=user)
