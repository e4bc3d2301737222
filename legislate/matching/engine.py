"""Connection requests between individuals and providers (NGOs / lawyers).

State machine per request:

    pending --accept--> accepted   (a "connection")
    pending --reject--> rejected

Only pending requests can move; accepted/rejected are terminal. An individual
may hold at most one open (pending or accepted) request per provider.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from legislate.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from legislate.models import (
    PROVIDER_ROLES,
    ConnectionRequest,
    Individual,
    RequestStatus,
    Role,
    Status,
    User,
    public_request,
    public_user,
    request_from_row,
    user_from_row,
)
from legislate.util.time import utcnow_iso


def _debug(msg: str) -> None:
    print(f"[matching] {msg}")


# Public profile columns of the joined user, prefixed so they don't clash with r.*
_PROFILE_COLUMNS = (
    "id",
    "role",
    "status",
    "name",
    "adminname",
    "uid",
    "email",
    "registration_number",
    "enrollment_number",
    "contact_number",
    "created_at",
)
_PROFILE_SELECT = ", ".join(f"u.{c} AS p_{c}" for c in _PROFILE_COLUMNS)


def _profile_from_row(row: Any) -> Dict[str, Any]:
    d = {c: row[f"p_{c}"] for c in _PROFILE_COLUMNS}
    return public_user(user_from_row(d))


def parse_provider_role(value: Optional[str]) -> Role:
    v = (value or "").strip().lower()
    if v not in {r.value for r in PROVIDER_ROLES}:
        raise ValidationError("role_must_be_ngo_or_lawyer")
    return Role(v)


def parse_transition(value: Optional[str]) -> RequestStatus:
    v = (value or "").strip().lower()
    if v not in (RequestStatus.ACCEPTED.value, RequestStatus.REJECTED.value):
        raise ValidationError("status_must_be_accepted_or_rejected")
    return RequestStatus(v)


def get_request(conn: Any, request_id: int) -> Optional[ConnectionRequest]:
    row = conn.execute("SELECT * FROM requests WHERE id=?", (int(request_id),)).fetchone()
    return request_from_row(row) if row is not None else None


def create_request(conn: Any, requester: User, *, target_id: int, target_role: Role) -> ConnectionRequest:
    if not isinstance(requester, Individual):
        raise AuthorizationError("requester_must_be_individual")
    if target_role not in PROVIDER_ROLES:
        raise ValidationError("role_must_be_ngo_or_lawyer")

    target = conn.execute(
        "SELECT role, status FROM users WHERE id=?",
        (int(target_id),),
    ).fetchone()
    if target is None or target["role"] != target_role.value:
        raise NotFoundError("target_not_found")
    if target["status"] != Status.VERIFIED.value:
        raise ValidationError("target_not_verified")

    now = utcnow_iso()
    # Single statement, so the duplicate check and the insert cannot interleave
    # with a concurrent request for the same pair.
    cur = conn.execute(
        """
        INSERT INTO requests (requester_id, requester_role, target_id, target_role, status, created_at, updated_at)
        SELECT ?, ?, ?, ?, 'pending', ?, ?
        WHERE NOT EXISTS (
            SELECT 1 FROM requests
            WHERE requester_id=? AND target_id=? AND status IN ('pending','accepted')
        )
        """,
        (
            requester.id,
            Role.INDIVIDUAL.value,
            int(target_id),
            target_role.value,
            now,
            now,
            requester.id,
            int(target_id),
        ),
    )
    if cur.rowcount == 0:
        raise ConflictError("duplicate_request")

    req = get_request(conn, int(cur.lastrowid))
    assert req is not None
    _debug(f"Request id={req.id} individual={requester.id} -> {target_role.value}={target_id}")
    return req


def transition_status(conn: Any, request_id: int, new_status: RequestStatus) -> ConnectionRequest:
    """Move a pending request to accepted/rejected.

    Who may call this (the target) is decided by the endpoint's gates.
    """
    if new_status not in (RequestStatus.ACCEPTED, RequestStatus.REJECTED):
        raise ValidationError("status_must_be_accepted_or_rejected")

    cur = conn.execute(
        "UPDATE requests SET status=?, updated_at=? WHERE id=? AND status='pending'",
        (new_status.value, utcnow_iso(), int(request_id)),
    )
    req = get_request(conn, request_id)
    if req is None:
        raise NotFoundError("request_not_found")
    if cur.rowcount == 0:
        raise ConflictError("request_not_pending")

    _debug(f"Request id={req.id} -> {new_status.value}")
    return req


def list_for_target(conn: Any, target: User) -> List[Dict[str, Any]]:
    """Requests addressed to `target`, newest first, with the requester's profile."""
    rows = conn.execute(
        f"""
        SELECT r.*, {_PROFILE_SELECT}
        FROM requests r
        JOIN users u ON u.id = r.requester_id
        WHERE r.target_id = ? AND r.target_role = ?
        ORDER BY r.created_at DESC, r.id DESC
        """,
        (target.id, target.role.value),
    ).fetchall()
    return [{**public_request(request_from_row(r)), "requester": _profile_from_row(r)} for r in rows]


def list_for_requester(conn: Any, requester_id: int) -> List[Dict[str, Any]]:
    """Requests made by `requester_id`, newest first, with the target's profile."""
    rows = conn.execute(
        f"""
        SELECT r.*, {_PROFILE_SELECT}
        FROM requests r
        JOIN users u ON u.id = r.target_id
        WHERE r.requester_id = ?
        ORDER BY r.created_at DESC, r.id DESC
        """,
        (int(requester_id),),
    ).fetchall()
    return [{**public_request(request_from_row(r)), "target": _profile_from_row(r)} for r in rows]


def list_connections(conn: Any, user: User) -> List[Dict[str, Any]]:
    """Accepted requests involving `user` on either side, with the other party's profile."""
    rows = conn.execute(
        f"""
        SELECT r.*, {_PROFILE_SELECT}
        FROM requests r
        JOIN users u ON u.id = CASE WHEN r.requester_id = ? THEN r.target_id ELSE r.requester_id END
        WHERE ((r.target_id = ? AND r.target_role = ?) OR r.requester_id = ?)
          AND r.status = 'accepted'
        ORDER BY r.created_at DESC, r.id DESC
        """,
        (user.id, user.id, user.role.value, user.id),
    ).fetchall()
    return [{**public_request(request_from_row(r)), "counterpart": _profile_from_row(r)} for r in rows]


def list_verified_providers(conn: Any, role: Role) -> List[Dict[str, Any]]:
    """Directory of verified NGOs or lawyers, newest first."""
    if role not in PROVIDER_ROLES:
        raise ValidationError("role_must_be_ngo_or_lawyer")
    rows = conn.execute(
        f"""
        SELECT {_PROFILE_SELECT}
        FROM users u
        WHERE u.role = ? AND u.status = 'verified'
        ORDER BY u.created_at DESC, u.id DESC
        """,
        (role.value,),
    ).fetchall()
    return [_profile_from_row(r) for r in rows]
