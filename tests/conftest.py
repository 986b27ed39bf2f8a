import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.config import Settings
from app.database import Database
from app.main import create_app
from app.services.events import EventStore


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{(tmp_path / 'calendar.db').as_posix()}"


@pytest.fixture
async def store(database_url):
    event_store = EventStore(Database(database_url))
    await event_store.ensure_schema()
    yield event_store
    await event_store.shutdown()


@pytest.fixture
def client(database_url):
    app = create_app(Settings(database_url=database_url, init_max_attempts=1))
    with TestClient(app) as test_client:
        yield test_client
