import os

# Must be set before crewportal.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-jwt-secret"
os.environ["WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["SCHEDULER_ENABLED"] = "false"

from typing import List  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import fakeredis  # noqa: E402
import fakeredis.aioredis  # noqa: E402
import pytest  # noqa: E402
from fastapi import BackgroundTasks  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from crewportal.auth import create_access_token  # noqa: E402
from crewportal.database import Base, get_db  # noqa: E402
from crewportal.dependencies import get_cache, get_dispatcher, get_entry_cache, get_zoho_client  # noqa: E402
from crewportal.main import app  # noqa: E402
from crewportal.models.user import User  # noqa: E402
from crewportal.schemas.auth import CurrentUser  # noqa: E402
from crewportal.schemas.time_entry import TimeEntryCreate  # noqa: E402
from crewportal.services.cache import EntryCache, ProjectCache  # noqa: E402
from crewportal.services.dispatcher import SyncJob  # noqa: E402
from crewportal.services.timesheet_store import TimesheetStore  # noqa: E402

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

FOREMAN = CurrentUser(id="user-1", email="foreman@example.com")
ENTRY_TTL_SECONDS = 30 * 24 * 60 * 60


class RecordingDispatcher:
    """Collects sync jobs instead of running them."""

    def __init__(self):
        self.jobs: List[SyncJob] = []

    def schedule(self, background_tasks: BackgroundTasks, job: SyncJob) -> None:
        self.jobs.append(job)


@pytest.fixture
def db_session() -> Session:
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def zoho_client() -> AsyncMock:
    client = AsyncMock()
    client.create_timesheet.return_value = "9000001"
    client.get_deals.return_value = []
    client.get_portal_users.return_value = []
    client.get_user_job_connections.return_value = []
    client.get_painters.return_value = []
    return client


@pytest.fixture
def redis_server():
    return fakeredis.FakeServer()


@pytest.fixture
def cache(redis_server) -> ProjectCache:
    return ProjectCache(fakeredis.aioredis.FakeRedis(server=redis_server, decode_responses=True))


@pytest.fixture
def entry_cache(redis_server) -> EntryCache:
    return EntryCache(fakeredis.aioredis.FakeRedis(server=redis_server, decode_responses=True), ENTRY_TTL_SECONDS)


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def client(db_session, zoho_client, dispatcher, redis_server) -> TestClient:
    def override_get_db():
        yield db_session

    def override_get_cache():
        # One client per request: TestClient runs each request on its own event loop
        return ProjectCache(fakeredis.aioredis.FakeRedis(server=redis_server, decode_responses=True))

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_zoho_client] = lambda: zoho_client
    app.dependency_overrides[get_cache] = override_get_cache
    app.dependency_overrides[get_entry_cache] = lambda: EntryCache(
        fakeredis.aioredis.FakeRedis(server=redis_server, decode_responses=True), ENTRY_TTL_SECONDS
    )
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def foreman(db_session) -> User:
    user = User(email=FOREMAN.email, username="foreman", zoho_id="5001")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def auth_headers() -> dict:
    token = create_access_token({"sub": FOREMAN.id, "email": FOREMAN.email})
    return {"Authorization": f"Bearer {token}"}


def make_payload(**overrides) -> dict:
    payload = {
        "jobId": "4100001",
        "jobName": "Smith Residence",
        "date": "2026-01-21",
        "notes": "Prime and first coat",
        "changeOrder": "",
        "painters": [
            {"painterId": "7001", "painterName": "Alex Rivera", "startTime": "07:00", "endTime": "15:30",
             "lunchStart": "11:30", "lunchEnd": "12:00"},
            {"painterId": "7002", "painterName": "Jordan Lee", "startTime": "08:00", "endTime": "16:00"},
        ],
        "sundryItems": [
            {"sundryItem": "caulkTube", "quantity": 3},
            {"sundryItem": "tip", "quantity": 0},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def create_timesheet(db_session):
    """Store a timesheet for the test foreman and return it."""
    def _create(user: CurrentUser = FOREMAN, **overrides):
        payload = TimeEntryCreate.model_validate(make_payload(**overrides))
        return TimesheetStore(db_session).create(user, payload)
    return _create
