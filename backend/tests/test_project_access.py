import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import OperationalError

from crewportal.models.painter import Painter
from crewportal.models.project import Project
from crewportal.models.user_project import UserProjectAssignment
from crewportal.services.cache import CacheUnavailable, ProjectCache
from crewportal.services.project_access import ProjectAccessService


@pytest.fixture
def assigned_projects(db_session):
    db_session.add_all([
        Project(id="41001", name="Smith Residence", customer="Smith", status="Scheduled"),
        Project(id="41002", name="Jones Exterior", customer="Jones", status="Active"),
        Project(id="41003", name="Lee Kitchen", customer="Lee", status="Active"),
        UserProjectAssignment(user_email="foreman@example.com", project_id="41001"),
        UserProjectAssignment(user_email="foreman@example.com", project_id="41002"),
    ])
    db_session.commit()


class BrokenRedis:
    """Every command fails as if Redis were down."""

    def __getattr__(self, name):
        async def fail(*args, **kwargs):
            raise RedisConnectionError("Connection refused")
        return fail


async def test_cache_hit_serves_from_cache(db_session, cache: ProjectCache):
    await cache.put_projects([{"id": "41009", "name": "Cached Only"}])
    await cache.replace_user_projects("foreman@example.com", ["41009"])

    projects = await ProjectAccessService(db_session, cache).list_projects("Foreman@example.com")

    assert [p["id"] for p in projects] == ["41009"]


async def test_cache_miss_falls_back_and_fills(db_session, cache: ProjectCache, assigned_projects):
    projects = await ProjectAccessService(db_session, cache).list_projects("foreman@example.com")

    assert sorted(p["id"] for p in projects) == ["41001", "41002"]
    assert await cache.get_project_ids("foreman@example.com") == {"41001", "41002"}
    cached = await cache.get_projects(["41001", "41002"])
    assert cached["41002"]["name"] == "Jones Exterior"


async def test_missing_details_fall_back_to_database(db_session, cache: ProjectCache, assigned_projects):
    await cache.replace_user_projects("foreman@example.com", ["41001", "41002"])
    await cache.put_projects([{"id": "41001", "name": "Smith Residence"}])

    projects = await ProjectAccessService(db_session, cache).list_projects("foreman@example.com")

    assert sorted(p["id"] for p in projects) == ["41001", "41002"]


async def test_cache_down_uses_database(db_session, assigned_projects):
    cache = ProjectCache(BrokenRedis())
    with pytest.raises(CacheUnavailable):
        await cache.get_project_ids("foreman@example.com")

    projects = await ProjectAccessService(db_session, cache).list_projects("foreman@example.com")

    assert sorted(p["id"] for p in projects) == ["41001", "41002"]


async def test_database_down_returns_empty(db_session, monkeypatch, caplog):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is gone"))

    monkeypatch.setattr("crewportal.services.project_access.load_assigned_projects", broken)

    projects = await ProjectAccessService(db_session, None).list_projects("foreman@example.com")

    assert projects == []
    assert "returning no projects" in caplog.text


async def test_unassigned_user_sees_nothing(db_session, cache: ProjectCache, assigned_projects):
    assert await ProjectAccessService(db_session, cache).list_projects("stranger@example.com") == []


def test_projects_endpoint(client, auth_headers, assigned_projects):
    response = client.get("/api/v1/projects", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert [p["id"] for p in data] == ["41002", "41001"]
    assert data[1]["customer"] == "Smith"
    assert "salesRep" in data[0]


def test_painters_endpoint_lists_active(client, auth_headers, db_session):
    db_session.add_all([
        Painter(id="7001", name="Alex Rivera", active=True),
        Painter(id="7002", name="Jordan Lee", active=False),
    ])
    db_session.commit()

    response = client.get("/api/v1/painters", headers=auth_headers)
    assert [p["id"] for p in response.json()] == ["7001"]

    response = client.get("/api/v1/painters?includeInactive=true", headers=auth_headers)
    assert [p["id"] for p in response.json()] == ["7001", "7002"]
