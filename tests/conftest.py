import pytest

from devinv.app import InventoryApp
from devinv.config import Settings
from devinv.database import Store


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a throwaway database with cheap password hashing."""
    return Settings(
        database_path=tmp_path / "app_database.sqlite",
        password_hash_iterations=1000,
    )


@pytest.fixture
def store(settings):
    store = Store(settings=settings)
    store.open()
    yield store
    store.close()


@pytest.fixture
def app(settings):
    app = InventoryApp(settings=settings)
    app.open()
    yield app
    app.close()


@pytest.fixture
def admin_app(app):
    assert app.session.login("admin", "1234")
    return app
