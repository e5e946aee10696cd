import os

import httpx
import pytest

# In-memory database shared by every test; must be set before the app is imported
os.environ["DB_URL"] = "sqlite://"
os.environ.setdefault("ENV", "dev")
os.environ.setdefault("AUTO_CREATE_SCHEMA", "true")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from gocomet_rides.client import RideServiceClient  # noqa: E402
from gocomet_rides.server.main import app as _app  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def app():
    return _app


@pytest.fixture
async def ride_client(app):
    """Client wired straight to the reference service, no sockets."""
    async with RideServiceClient("http://testserver", transport=httpx.ASGITransport(app=app)) as client:
        yield client
