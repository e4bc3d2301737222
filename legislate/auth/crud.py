from __future__ import annotations

import sqlite3
from typing import Any, Dict, List, Optional

from legislate.config import Config
from legislate.db import connect
from legislate.errors import ConflictError, NotFoundError
from legislate.models import (
    LOGIN_KEY_COLUMNS,
    Admin,
    Individual,
    Lawyer,
    Ngo,
    Role,
    Status,
    User,
    user_from_row,
)
from legislate.util.time import utcnow_iso

from .security import hash_password


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


_USER_COLUMNS = (
    "role",
    "status",
    "name",
    "adminname",
    "uid",
    "email",
    "password_hash",
    "totp_secret",
    "registration_number",
    "enrollment_number",
    "contact_number",
)


def normalize_identifier(value: Optional[str]) -> str:
    return (value or "").strip()


def get_user_by_id(conn: Any, user_id: int) -> Optional[User]:
    row = conn.execute("SELECT * FROM users WHERE id=?", (int(user_id),)).fetchone()
    return user_from_row(row) if row is not None else None


def find_user_by_login_key(conn: Any, role: Role, identifier: str) -> Optional[User]:
    key = normalize_identifier(identifier)
    if not key:
        return None
    col = LOGIN_KEY_COLUMNS[role]
    row = conn.execute(
        f"SELECT * FROM users WHERE role=? AND {col}=?",
        (role.value, key),
    ).fetchone()
    return user_from_row(row) if row is not None else None


def get_admin_by_uid(conn: Any, uid: str) -> Optional[Admin]:
    key = normalize_identifier(uid)
    if not key:
        return None
    row = conn.execute(
        "SELECT * FROM users WHERE role='admin' AND uid=?",
        (key,),
    ).fetchone()
    return user_from_row(row) if row is not None else None


def list_users_by_role_status(conn: Any, role: Role, status: Status) -> List[User]:
    rows = conn.execute(
        "SELECT * FROM users WHERE role=? AND status=? ORDER BY created_at DESC, id DESC",
        (role.value, status.value),
    ).fetchall()
    return [user_from_row(r) for r in rows]


def _insert_user(conn: Any, *, duplicate_detail: str, **values: Any) -> User:
    now = utcnow_iso()
    data: Dict[str, Any] = {c: values.get(c) for c in _USER_COLUMNS}
    cols = list(data.keys()) + ["created_at", "updated_at"]
    params = list(data.values()) + [now, now]
    placeholders = ",".join("?" for _ in cols)
    try:
        cur = conn.execute(
            f"INSERT INTO users ({', '.join(cols)}) VALUES ({placeholders})",
            params,
        )
    except sqlite3.IntegrityError as e:
        # Partial unique indexes: login key already taken within this role.
        raise ConflictError(duplicate_detail) from e
    user = get_user_by_id(conn, int(cur.lastrowid))
    assert user is not None
    return user


def create_admin(
    conn: Any,
    *,
    adminname: str,
    uid: str,
    email: str,
    password: str,
    totp_secret: Optional[str] = None,
) -> Admin:
    name = normalize_identifier(adminname)
    if find_user_by_login_key(conn, Role.ADMIN, name) is not None:
        raise ConflictError("adminname_exists")
    user = _insert_user(
        conn,
        duplicate_detail="admin_uid_exists",
        role=Role.ADMIN.value,
        status=Status.VERIFIED.value,
        name=name,
        adminname=name,
        uid=normalize_identifier(uid),
        email=normalize_identifier(email),
        password_hash=hash_password(password),
        totp_secret=totp_secret,
    )
    _debug(f"Created admin id={user.id} adminname={name}")
    return user


def create_ngo(conn: Any, *, registration_number: str, name: str, email: str, totp_secret: str) -> Ngo:
    reg = normalize_identifier(registration_number)
    if find_user_by_login_key(conn, Role.NGO, reg) is not None:
        raise ConflictError("registration_number_exists")
    user = _insert_user(
        conn,
        duplicate_detail="registration_number_exists",
        role=Role.NGO.value,
        status=Status.PENDING.value,
        name=normalize_identifier(name),
        email=normalize_identifier(email),
        totp_secret=totp_secret,
        registration_number=reg,
    )
    _debug(f"Registered ngo id={user.id} registration_number={reg} (pending)")
    return user


def create_lawyer(
    conn: Any,
    *,
    name: str,
    enrollment_number: str,
    email: str,
    contact_number: str,
    totp_secret: str,
) -> Lawyer:
    contact = normalize_identifier(contact_number)
    if find_user_by_login_key(conn, Role.LAWYER, contact) is not None:
        raise ConflictError("contact_number_exists")
    user = _insert_user(
        conn,
        duplicate_detail="enrollment_number_exists",
        role=Role.LAWYER.value,
        status=Status.PENDING.value,
        name=normalize_identifier(name),
        email=normalize_identifier(email),
        totp_secret=totp_secret,
        enrollment_number=normalize_identifier(enrollment_number),
        contact_number=contact,
    )
    _debug(f"Registered lawyer id={user.id} (pending)")
    return user


def create_individual(conn: Any, *, name: str, contact_number: str, password: str) -> Individual:
    n = normalize_identifier(name)
    if find_user_by_login_key(conn, Role.INDIVIDUAL, n) is not None:
        raise ConflictError("name_exists")
    user = _insert_user(
        conn,
        duplicate_detail="name_exists",
        role=Role.INDIVIDUAL.value,
        # Individuals need no admin approval.
        status=Status.VERIFIED.value,
        name=n,
        contact_number=normalize_identifier(contact_number),
        password_hash=hash_password(password),
    )
    _debug(f"Registered individual id={user.id}")
    return user


def update_user_status(conn: Any, user_id: int, status: Status) -> User:
    cur = conn.execute(
        "UPDATE users SET status=?, updated_at=? WHERE id=?",
        (status.value, utcnow_iso(), int(user_id)),
    )
    if cur.rowcount == 0:
        raise NotFoundError("user_not_found")
    user = get_user_by_id(conn, user_id)
    assert user is not None
    return user


def set_totp_secret_if_missing(conn: Any, user_id: int, totp_secret: str) -> bool:
    """Store a TOTP secret unless one is already configured. Returns whether it was stored."""
    cur = conn.execute(
        "UPDATE users SET totp_secret=?, updated_at=? WHERE id=? AND totp_secret IS NULL",
        (totp_secret, utcnow_iso(), int(user_id)),
    )
    return cur.rowcount == 1


def bootstrap_admin_if_needed(cfg: Config) -> Optional[Admin]:
    """Create the default admin if no admin exists yet.

    Controlled via environment variables so a new clone has a deterministic way to log in:

    - AUTH_BOOTSTRAP_ADMIN_NAME (default: admin)
    - AUTH_BOOTSTRAP_ADMIN_UID (default: 1000)
    - AUTH_BOOTSTRAP_ADMIN_EMAIL
    - AUTH_BOOTSTRAP_ADMIN_PASSWORD (default: admin)

    The seeded admin has no TOTP secret; login only asks for an OTP once
    /auth/admin/setup-totp has been used.
    """

    with connect(cfg.DB_PATH) as conn:
        n = conn.execute("SELECT COUNT(*) AS n FROM users WHERE role='admin'").fetchone()["n"]
        if int(n) > 0:
            return None

        adminname = normalize_identifier(cfg.AUTH_BOOTSTRAP_ADMIN_NAME)
        password = cfg.AUTH_BOOTSTRAP_ADMIN_PASSWORD

        # If env explicitly clears these, don't create anything.
        if not adminname or not password:
            return None

        return create_admin(
            conn,
            adminname=adminname,
            uid=cfg.AUTH_BOOTSTRAP_ADMIN_UID,
            email=cfg.AUTH_BOOTSTRAP_ADMIN_EMAIL,
            password=password,
        )
