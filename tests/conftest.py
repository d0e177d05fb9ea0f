import asyncio
import os
import tempfile

_db_dir = tempfile.mkdtemp(prefix="chatapp-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_db_dir}/test.db"
os.environ["SECRET_KEY"] = "test-secret-key"

import pytest
from fastapi.testclient import TestClient

from chatapp.main import app
from chatapp.database import async_engine
from chatapp.models.base import Base
from chatapp.uploads import ImageUploadError, get_image_uploader
from chatapp.websocket_manager import presence


class FakeUploader:
    def __init__(self):
        self.uploads = []
        self.fail = False

    async def upload(self, image: str) -> str:
        if self.fail:
            raise ImageUploadError("Image host unavailable")
        self.uploads.append(image)
        return f"https://images.example.com/{len(self.uploads)}.png"


async def _reset_database():
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def client(uploader):
    asyncio.run(_reset_database())
    presence.clear()
    app.dependency_overrides[get_image_uploader] = lambda: uploader

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    presence.clear()


def signup(client, full_name: str, email: str, password: str = "secret123"):
    response = client.post(
        "/api/auth/signup",
        json={"fullName": full_name, "email": email, "password": password},
    )
    data = response.json()
    assert data["success"], data
    return data["userData"], {"Authorization": f"Bearer {data['token']}"}, data["token"]


@pytest.fixture
def alice(client):
    return signup(client, "Alice", "alice@example.com")


@pytest.fixture
def bob(client):
    return signup(client, "Bob", "bob@example.com")


@pytest.fixture
def carol(client):
    return signup(client, "Carol", "carol@example.com")
