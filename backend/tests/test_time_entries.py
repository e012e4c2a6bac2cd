from datetime import date, timedelta

from fastapi import BackgroundTasks
from sqlalchemy.exc import OperationalError

from conftest import FOREMAN, TestingSessionLocal, make_payload
from crewportal.connectors.zoho_client import ZohoAPIError
from crewportal.models.crew_time_row import CrewTimeRow
from crewportal.models.timesheet import Timesheet
from crewportal.services.dispatcher import SyncDispatcher, SyncJob


def test_submission_returns_201_and_queues_sync(client, auth_headers, dispatcher, zoho_client, db_session):
    response = client.post("/api/v1/time-entries", json=make_payload(), headers=auth_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["jobId"] == "4100001"
    assert data["totalCrewHours"] == 16.0
    assert data["synced"] is False
    assert data["pendingSync"] is True
    assert data["sundryItems"] == {"caulkTube": 3}
    assert {p["painterId"]: p["totalHours"] for p in data["painters"]} == {"7001": 8.0, "7002": 8.0}

    # The request only queues work; nothing reaches Zoho during it
    assert dispatcher.jobs == [SyncJob(timesheet_id=data["id"], user_id=FOREMAN.id)]
    zoho_client.create_timesheet.assert_not_awaited()
    zoho_client.create_junction.assert_not_awaited()

    stored = db_session.get(Timesheet, data["id"])
    assert stored.user_email == "foreman@example.com"
    assert stored.caulk_tube == 3
    assert len(stored.crew_rows) == 2


def test_duplicate_painter_rejected_before_persisting(client, auth_headers, dispatcher, db_session):
    row = {"painterId": "7001", "painterName": "Alex Rivera", "startTime": "07:00", "endTime": "15:00"}
    response = client.post("/api/v1/time-entries", json=make_payload(painters=[row, dict(row)]),
                           headers=auth_headers)

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid payload"
    assert any("Duplicate painterId" in d["msg"] for d in body["details"])
    assert db_session.query(Timesheet).count() == 0
    assert db_session.query(CrewTimeRow).count() == 0
    assert dispatcher.jobs == []


def test_missing_crew_rejected(client, auth_headers):
    response = client.post("/api/v1/time-entries", json=make_payload(painters=[]), headers=auth_headers)
    assert response.status_code == 400


def test_bad_time_rejected_with_field_location(client, auth_headers):
    painters = [{"painterId": "7001", "painterName": "Alex", "startTime": "25:00", "endTime": "15:00"}]
    response = client.post("/api/v1/time-entries", json=make_payload(painters=painters), headers=auth_headers)

    assert response.status_code == 400
    locs = [d["loc"] for d in response.json()["details"]]
    assert ["body", "painters", 0, "startTime"] in locs


def test_unauthenticated_submission(client, db_session):
    response = client.post("/api/v1/time-entries", json=make_payload())
    assert response.status_code == 401
    assert db_session.query(Timesheet).count() == 0


def test_am_pm_times_normalized(client, auth_headers):
    painters = [{"painterId": "7001", "painterName": "Alex", "startTime": "7:00 AM", "endTime": "3:30 PM",
                 "lunchStart": "11:30 AM", "lunchEnd": "12:00 PM"}]
    response = client.post("/api/v1/time-entries", json=make_payload(painters=painters), headers=auth_headers)

    assert response.status_code == 201
    row = response.json()["painters"][0]
    assert (row["startTime"], row["endTime"], row["lunchEnd"]) == ("07:00", "15:30", "12:00")
    assert row["totalHours"] == 8.0


def test_persistence_failure_returns_500(client, auth_headers, dispatcher, monkeypatch):
    def broken_commit(self):
        raise OperationalError("INSERT", {}, Exception("disk full"))

    monkeypatch.setattr("sqlalchemy.orm.Session.commit", broken_commit)
    response = client.post("/api/v1/time-entries", json=make_payload(), headers=auth_headers)

    assert response.status_code == 500
    assert dispatcher.jobs == []


def test_history_shows_pending_sync(client, auth_headers, create_timesheet, db_session):
    recent = create_timesheet(date=date.today().isoformat())
    create_timesheet(date=(date.today() - timedelta(days=60)).isoformat())
    recent.zoho_parent_id = "9000001"
    db_session.commit()

    response = client.get("/api/v1/time-entries?days=30", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert [t["id"] for t in data] == [recent.id]
    assert data[0]["pendingSync"] is True
    assert data[0]["zohoParentId"] == "9000001"


async def test_dispatcher_runs_sync_with_own_session(db_session, zoho_client, foreman, create_timesheet):
    timesheet = create_timesheet()
    zoho_client.create_junction.side_effect = ["8001", "8002"]
    dispatcher = SyncDispatcher(zoho_client, cache=None, session_factory=TestingSessionLocal)

    await dispatcher.run(SyncJob(timesheet_id=timesheet.id, user_id=FOREMAN.id))

    db_session.refresh(timesheet)
    assert timesheet.synced
    assert timesheet.zoho_parent_id == "9000001"


async def test_dispatcher_swallows_sync_errors(db_session, zoho_client, foreman, create_timesheet, caplog):
    timesheet = create_timesheet()
    zoho_client.create_timesheet.side_effect = ZohoAPIError("Zoho request timed out")
    dispatcher = SyncDispatcher(zoho_client, cache=None, session_factory=TestingSessionLocal)

    await dispatcher.run(SyncJob(timesheet_id=timesheet.id, user_id=FOREMAN.id))

    db_session.refresh(timesheet)
    assert not timesheet.synced
    assert "parent creation failed" in caplog.text


def test_dispatcher_schedules_background_task(zoho_client):
    tasks = BackgroundTasks()
    dispatcher = SyncDispatcher(zoho_client, cache=None, session_factory=TestingSessionLocal)

    dispatcher.schedule(tasks, SyncJob(timesheet_id="t-1", user_id="user-1"))

    assert len(tasks.tasks) == 1
    assert tasks.tasks[0].func == dispatcher.run
