import pytest

from devinv.config import Settings
from devinv.database import Store
from devinv.exceptions import StoreUnavailableError


def test_open_creates_tables_and_default_admin(store):
    tables = {
        r["name"]
        for r in store.query("SELECT name FROM sqlite_master WHERE type = 'table'")
    }
    assert {"users", "devices", "logs"} <= tables

    rows = store.query("SELECT username, role, password_hash FROM users")
    assert len(rows) == 1
    assert rows[0]["username"] == "admin"
    assert rows[0]["role"] == "Administrator"
    assert rows[0]["password_hash"] != "1234"


def test_open_is_idempotent(store):
    assert store.open() is store.open()


def test_reopen_does_not_seed_twice(settings):
    with Store(settings=settings) as s:
        assert s.is_open
    assert not s.is_open
    with Store(settings=settings) as s:
        assert len(s.query("SELECT id FROM users")) == 1


def test_default_path_is_in_app_data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
    monkeypatch.setattr("sys.platform", "linux")
    settings = Settings(app_name="Inventory")
    assert settings.resolved_database_path() == tmp_path / "Inventory" / "app_database.sqlite"


def test_unopenable_path_raises(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x")
    settings = Settings(database_path=blocker / "db.sqlite", password_hash_iterations=1000)
    store = Store(settings=settings)
    with pytest.raises(StoreUnavailableError):
        store.open()
    assert not store.is_open


def test_execute_reports_failures_without_raising(store):
    assert store.execute(
        "INSERT INTO logs (timestamp, category, message) VALUES (CURRENT_TIMESTAMP, :c, :m)",
        {"c": "Test", "m": "hello"},
    )
    assert store.execute("INSERT INTO no_such_table VALUES (1)") is False
    assert store.query("SELECT * FROM no_such_table") == []
    assert store.query("SELECT message FROM logs") == [{"message": "hello"}]


def test_duplicate_username_violates_schema(store):
    assert not store.execute(
        "INSERT INTO users (username, password_hash, role) VALUES ('admin', 'x', 'user')"
    )


def test_closed_store_refuses_statements(settings):
    store = Store(settings=settings)
    assert store.execute("SELECT 1") is False
    assert store.query("SELECT 1") == []
    with pytest.raises(StoreUnavailableError):
        store.session()


def test_in_memory_store():
    with Store(":memory:", settings=Settings(password_hash_iterations=1000)) as s:
        assert s.query("SELECT username FROM users") == [{"username": "admin"}]
