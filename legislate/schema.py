"""Database schema for the Legislate backend.

Two tables: `users` (all four roles in one table, role-specific columns nullable)
and `requests` (individual -> ngo/lawyer connection requests).

Timestamps are ISO-8601 TEXT (UTC, with 'Z'); ISO strings sort lexicographically in
time order, so `ORDER BY created_at DESC` gives newest first.

Login keys are unique *within a role*, enforced with partial unique indexes, so an
individual and a lawyer may share a contact number while two lawyers may not.
"""

from __future__ import annotations


SCHEMA_SQLITE = r"""
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    role TEXT NOT NULL CHECK (role IN ('admin','ngo','lawyer','individual')),
    status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending','verified','rejected')),
    name TEXT,
    adminname TEXT,
    uid TEXT,
    email TEXT,
    password_hash TEXT,
    totp_secret TEXT,
    registration_number TEXT,
    enrollment_number TEXT,
    contact_number TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_users_role_status ON users (role, status, created_at);
CREATE UNIQUE INDEX IF NOT EXISTS ux_users_admin_adminname ON users (adminname) WHERE role = 'admin';
CREATE UNIQUE INDEX IF NOT EXISTS ux_users_admin_uid ON users (uid) WHERE role = 'admin';
CREATE UNIQUE INDEX IF NOT EXISTS ux_users_ngo_registration ON users (registration_number) WHERE role = 'ngo';
CREATE UNIQUE INDEX IF NOT EXISTS ux_users_lawyer_enrollment ON users (enrollment_number) WHERE role = 'lawyer';
CREATE UNIQUE INDEX IF NOT EXISTS ux_users_lawyer_contact ON users (contact_number) WHERE role = 'lawyer';
CREATE UNIQUE INDEX IF NOT EXISTS ux_users_individual_name ON users (name) WHERE role = 'individual';

-- Connection requests (individual -> ngo/lawyer)
-- Roles are copied onto the row at creation; they are not enforced by foreign-key typing.
CREATE TABLE IF NOT EXISTS requests (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    requester_id INTEGER NOT NULL,
    requester_role TEXT NOT NULL CHECK (requester_role = 'individual'),
    target_id INTEGER NOT NULL,
    target_role TEXT NOT NULL CHECK (target_role IN ('ngo','lawyer')),
    status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending','accepted','rejected')),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (requester_id) REFERENCES users(id),
    FOREIGN KEY (target_id) REFERENCES users(id)
);
CREATE INDEX IF NOT EXISTS idx_requests_target ON requests (target_id, target_role, created_at);
CREATE INDEX IF NOT EXISTS idx_requests_requester ON requests (requester_id, created_at);
CREATE INDEX IF NOT EXISTS idx_requests_pair_status ON requests (requester_id, target_id, status);
"""


def get_schema_sql() -> str:
    return SCHEMA_SQLITE
