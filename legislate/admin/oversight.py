from __future__ import annotations

from typing import Any, Dict, Optional

from legislate.auth.crud import get_user_by_id, list_users_by_role_status, update_user_status
from legislate.errors import NotFoundError, ValidationError
from legislate.models import PROVIDER_ROLES, Role, Status, User, public_user


def _debug(msg: str) -> None:
    print(f"[admin] {msg}")


def stats(conn: Any) -> Dict[str, int]:
    row = conn.execute(
        """
        SELECT
            COUNT(*) AS total_users,
            SUM(CASE WHEN role='ngo' AND status='verified' THEN 1 ELSE 0 END) AS verified_ngos,
            SUM(CASE WHEN role='lawyer' AND status='verified' THEN 1 ELSE 0 END) AS verified_lawyers,
            SUM(CASE WHEN role='individual' THEN 1 ELSE 0 END) AS individuals
        FROM users
        """
    ).fetchone()
    # SUM() over zero rows is NULL.
    return {
        "totalUsers": int(row["total_users"] or 0),
        "verifiedNgos": int(row["verified_ngos"] or 0),
        "verifiedLawyers": int(row["verified_lawyers"] or 0),
        "individuals": int(row["individuals"] or 0),
    }


def pending_approvals(conn: Any) -> Dict[str, Any]:
    return {
        "ngos": [public_user(u) for u in list_users_by_role_status(conn, Role.NGO, Status.PENDING)],
        "lawyers": [public_user(u) for u in list_users_by_role_status(conn, Role.LAWYER, Status.PENDING)],
    }


def parse_action(value: Optional[str]) -> Status:
    v = (value or "").strip().lower()
    if v not in (Status.VERIFIED.value, Status.REJECTED.value):
        raise ValidationError("action_must_be_verified_or_rejected")
    return Status(v)


def verify_user(conn: Any, user_id: int, action: Status) -> User:
    """Set an NGO/lawyer account to verified or rejected.

    Re-applying the current status is allowed and changes nothing but `updated_at`.
    """
    if action not in (Status.VERIFIED, Status.REJECTED):
        raise ValidationError("action_must_be_verified_or_rejected")

    user = get_user_by_id(conn, user_id)
    if user is None:
        raise NotFoundError("user_not_found")
    if user.role not in PROVIDER_ROLES:
        raise ValidationError("user_not_verifiable")

    updated = update_user_status(conn, user.id, action)
    _debug(f"{user.role.value} id={user.id} {user.status.value} -> {action.value}")
    return updated
