import asyncio
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from tasktracker.crud.task import TaskRepository
from tasktracker.database import init_models
from tasktracker.main import create_app
from tasktracker.services.image_store import ImageStore
from tasktracker.services.task_service import TaskService


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def session_factory(tmp_path) -> async_sessionmaker[AsyncSession]:
    """File-backed SQLite store with a fresh schema per test.

    NullPool keeps connections from leaking between the event loops that
    TestClient and the anyio plugin run on.
    """

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tasks.db'}", poolclass=NullPool)
    asyncio.run(init_models(engine))
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture()
def image_store(tmp_path) -> ImageStore:
    return ImageStore(tmp_path / "uploads")


@pytest.fixture()
def service(session_factory, image_store) -> TaskService:
    return TaskService(TaskRepository(session_factory), image_store)


@pytest.fixture()
def app(service):
    return create_app(task_service=service)


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def owner_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture()
def other_owner_id() -> uuid.UUID:
    return uuid.uuid4()
