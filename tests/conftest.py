import pytest

from rest_client import db as dbmod
from rest_client import app as app_module


@pytest.fixture(autouse=True)
def history_db(tmp_path):
    """Point the store at a disposable SQLite file with the schema in place."""
    dbmod.reconfigure(f"sqlite:///{tmp_path / 'history.db'}")
    dbmod.create_schema()
    app_module.service.cache.invalidate()
    yield
    app_module.service.cache.invalidate()
    dbmod.dispose()


@pytest.fixture
def make_record():
    def _make(**overrides):
        record = {
            "method": "GET",
            "url": "https://api.example.com/items",
            "headers": {},
            "body": None,
            "response": '{"ok":true}',
            "status": 200,
            "response_time": 42,
        }
        record.update(overrides)
        rid = dbmod.insert_request_record(record)
        assert rid is not None
        return rid
    return _make
