"""Domain types.

A user is one of four frozen dataclasses (`Admin`, `Ngo`, `Lawyer`, `Individual`),
each carrying only the identifier fields of its role. `user_from_row` is the only
place where a stored role string is turned into a variant.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Mapping, Optional, Union


class Role(str, Enum):
    ADMIN = "admin"
    NGO = "ngo"
    LAWYER = "lawyer"
    INDIVIDUAL = "individual"


class Status(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class RequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


PROVIDER_ROLES = (Role.NGO, Role.LAWYER)

# Column used to look a user up at login, per role.
LOGIN_KEY_COLUMNS: Dict[Role, str] = {
    Role.ADMIN: "adminname",
    Role.NGO: "registration_number",
    Role.LAWYER: "contact_number",
    Role.INDIVIDUAL: "name",
}


@dataclass(frozen=True)
class Admin:
    role: ClassVar[Role] = Role.ADMIN

    id: int
    status: Status
    adminname: str
    uid: Optional[str]
    name: Optional[str]
    email: Optional[str]
    created_at: str
    password_hash: Optional[str] = field(default=None, repr=False)
    totp_secret: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class Ngo:
    role: ClassVar[Role] = Role.NGO

    id: int
    status: Status
    registration_number: str
    name: str
    email: Optional[str]
    created_at: str
    totp_secret: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class Lawyer:
    role: ClassVar[Role] = Role.LAWYER

    id: int
    status: Status
    name: str
    enrollment_number: str
    contact_number: str
    email: Optional[str]
    created_at: str
    totp_secret: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class Individual:
    role: ClassVar[Role] = Role.INDIVIDUAL

    id: int
    status: Status
    name: str
    contact_number: Optional[str]
    created_at: str
    password_hash: Optional[str] = field(default=None, repr=False)


User = Union[Admin, Ngo, Lawyer, Individual]
Provider = Union[Ngo, Lawyer]


def _admin(d: Dict[str, Any]) -> Admin:
    return Admin(
        id=int(d["id"]),
        status=Status(d["status"]),
        adminname=str(d["adminname"]),
        uid=d.get("uid"),
        name=d.get("name"),
        email=d.get("email"),
        created_at=str(d["created_at"]),
        password_hash=d.get("password_hash"),
        totp_secret=d.get("totp_secret"),
    )


def _ngo(d: Dict[str, Any]) -> Ngo:
    return Ngo(
        id=int(d["id"]),
        status=Status(d["status"]),
        registration_number=str(d["registration_number"]),
        name=str(d["name"]),
        email=d.get("email"),
        created_at=str(d["created_at"]),
        totp_secret=d.get("totp_secret"),
    )


def _lawyer(d: Dict[str, Any]) -> Lawyer:
    return Lawyer(
        id=int(d["id"]),
        status=Status(d["status"]),
        name=str(d["name"]),
        enrollment_number=str(d["enrollment_number"]),
        contact_number=str(d["contact_number"]),
        email=d.get("email"),
        created_at=str(d["created_at"]),
        totp_secret=d.get("totp_secret"),
    )


def _individual(d: Dict[str, Any]) -> Individual:
    return Individual(
        id=int(d["id"]),
        status=Status(d["status"]),
        name=str(d["name"]),
        contact_number=d.get("contact_number"),
        created_at=str(d["created_at"]),
        password_hash=d.get("password_hash"),
    )


_BUILDERS: Dict[Role, Callable[[Dict[str, Any]], User]] = {
    Role.ADMIN: _admin,
    Role.NGO: _ngo,
    Role.LAWYER: _lawyer,
    Role.INDIVIDUAL: _individual,
}


def user_from_row(row: Mapping[str, Any]) -> User:
    d = dict(row)
    return _BUILDERS[Role(d["role"])](d)


def public_user(user: User) -> Dict[str, Any]:
    """JSON-safe view of a user. Credential material never leaves through here."""
    return {
        "id": user.id,
        "role": user.role.value,
        "status": user.status.value,
        "name": getattr(user, "name", None),
        "adminname": getattr(user, "adminname", None),
        "uid": getattr(user, "uid", None),
        "email": getattr(user, "email", None),
        "registrationNumber": getattr(user, "registration_number", None),
        "enrollmentNumber": getattr(user, "enrollment_number", None),
        "contactNumber": getattr(user, "contact_number", None),
        "createdAt": user.created_at,
    }


@dataclass(frozen=True)
class ConnectionRequest:
    id: int
    requester_id: int
    requester_role: Role
    target_id: int
    target_role: Role
    status: RequestStatus
    created_at: str
    updated_at: str


def request_from_row(row: Mapping[str, Any]) -> ConnectionRequest:
    d = dict(row)
    return ConnectionRequest(
        id=int(d["id"]),
        requester_id=int(d["requester_id"]),
        requester_role=Role(d["requester_role"]),
        target_id=int(d["target_id"]),
        target_role=Role(d["target_role"]),
        status=RequestStatus(d["status"]),
        created_at=str(d["created_at"]),
        updated_at=str(d["updated_at"]),
    )


def public_request(req: ConnectionRequest) -> Dict[str, Any]:
    return {
        "id": req.id,
        "requesterId": req.requester_id,
        "requesterRole": req.requester_role.value,
        "targetId": req.target_id,
        "targetRole": req.target_role.value,
        "status": req.status.value,
        "createdAt": req.created_at,
        "updatedAt": req.updated_at,
    }
