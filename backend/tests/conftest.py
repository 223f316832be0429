import base64
import io
import os

os.environ.setdefault("RUN_EMBEDDED_WORKER", "false")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.database import get_db
from app.dependencies import get_credential_resolver, get_file_storage, get_job_queue
from app.main import app
from app.models import Base
from app.services.errors import UnauthorizedError
from app.services.file_service import FileService
from app.services.file_storage import FileStorageService
from app.services.job_queue import JobQueue

TOKENS = {
    "token-alice": "alice",
    "token-bob": "bob",
}
ALICE = {"X-Token": "token-alice"}
BOB = {"X-Token": "token-bob"}


class FakeCredentialResolver:
    """Dict-backed stand-in for the Redis token lookup."""

    def __init__(self, tokens: dict[str, str]):
        self.tokens = tokens

    async def resolve(self, token):
        if not token or token not in self.tokens:
            raise UnauthorizedError()
        return self.tokens[token]


class FailingJobQueue:
    def __init__(self):
        self.calls = 0

    async def enqueue(self, job_type, params, user_id):
        self.calls += 1
        raise ConnectionError("queue unavailable")


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


def png_bytes(width: int = 800, height: int = 600) -> bytes:
    out = io.BytesIO()
    Image.new("RGB", (width, height), "red").save(out, format="PNG")
    return out.getvalue()


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'files.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def storage(tmp_path):
    return FileStorageService(tmp_path / "storage")


@pytest.fixture
def job_queue(session_factory):
    return JobQueue(session_factory)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def service(db, storage, job_queue):
    return FileService(db, storage, job_queue)


@pytest_asyncio.fixture
async def client(session_factory, storage, job_queue):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_file_storage] = lambda: storage
    app.dependency_overrides[get_job_queue] = lambda: job_queue
    app.dependency_overrides[get_credential_resolver] = lambda: FakeCredentialResolver(TOKENS)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
