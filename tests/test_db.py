import sqlite3

import pytest

from legislate.config import Config, _env_bool
from legislate.db import connect, init_db


def test_init_db_is_idempotent(tmp_path):
    path = str(tmp_path / "db.sqlite")
    init_db(path)
    init_db(path)
    with connect(path) as conn:
        tables = {r["name"] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    assert {"users", "requests"} <= tables


def test_connect_accepts_sqlite_url(tmp_path):
    path = tmp_path / "url.sqlite"
    init_db(f"sqlite:///{path}")
    assert path.exists()


def test_connect_rolls_back_on_error(tmp_path):
    path = str(tmp_path / "db.sqlite")
    init_db(path)
    with pytest.raises(RuntimeError):
        with connect(path) as conn:
            conn.execute(
                "INSERT INTO users (role, status, name, created_at, updated_at) VALUES ('individual','verified','x','t','t')"
            )
            raise RuntimeError("boom")
    with connect(path) as conn:
        assert conn.execute("SELECT COUNT(*) AS n FROM users").fetchone()["n"] == 0


def test_role_scoped_uniqueness(tmp_path):
    path = str(tmp_path / "db.sqlite")
    init_db(path)
    insert = "INSERT INTO users (role, status, name, created_at, updated_at) VALUES (?, 'verified', ?, 't', 't')"
    with connect(path) as conn:
        conn.execute(insert, ("individual", "Asha"))
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(insert, ("individual", "Asha"))


def test_migration_backfills_updated_at(tmp_path):
    path = str(tmp_path / "old.sqlite")
    raw = sqlite3.connect(path)
    raw.executescript(
        """
        CREATE TABLE requests (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            requester_id INTEGER NOT NULL,
            requester_role TEXT NOT NULL,
            target_id INTEGER NOT NULL,
            target_role TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            created_at TEXT NOT NULL
        );
        INSERT INTO requests (requester_id, requester_role, target_id, target_role, created_at)
        VALUES (1, 'individual', 2, 'ngo', '2024-01-01T00:00:00Z');
        """
    )
    raw.commit()
    raw.close()

    init_db(path)
    with connect(path) as conn:
        row = conn.execute("SELECT created_at, updated_at FROM requests").fetchone()
    assert row["updated_at"] == row["created_at"]


def test_config_reads_environment(monkeypatch):
    monkeypatch.setenv("LEGISLATE_DB_PATH", "/tmp/elsewhere.sqlite")
    monkeypatch.setenv("AUTH_TOKEN_EXPIRE_MINUTES", "15")
    monkeypatch.setenv("DEBUG_ERRORS", "yes")
    cfg = Config()
    assert cfg.DB_PATH == "/tmp/elsewhere.sqlite"
    assert cfg.AUTH_TOKEN_EXPIRE_MINUTES == 15
    assert cfg.DEBUG_ERRORS is True


@pytest.mark.parametrize("raw,expected", [("1", True), ("off", False), ("maybe", None)])
def test_env_bool(monkeypatch, raw, expected):
    monkeypatch.setenv("SOME_FLAG", raw)
    assert _env_bool("SOME_FLAG") is expected
