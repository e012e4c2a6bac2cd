from crewportal.connectors.zoho_client import ZohoAPIError
from crewportal.models.crew_time_row import CrewTimeRow
from crewportal.models.timesheet import Timesheet
from crewportal.schemas.auth import CurrentUser
from crewportal.services.cache import ProjectCache
from crewportal.services.sync_service import SyncService, SyncState, sync_state


def assert_synced_invariant(db_session):
    for timesheet in db_session.query(Timesheet).all():
        db_session.refresh(timesheet)
        complete = bool(timesheet.zoho_parent_id) and all(r.zoho_junction_id for r in timesheet.crew_rows)
        assert timesheet.synced == complete


async def test_full_sync_creates_parent_and_junctions(db_session, zoho_client, foreman, create_timesheet):
    timesheet = create_timesheet()
    zoho_client.create_junction.side_effect = ["8001", "8002"]

    result = await SyncService(zoho_client, db_session).sync_timesheet(timesheet.id)

    assert result.state is SyncState.FULLY_SYNCED
    assert result.parent_created
    assert result.junctions_created == 2
    db_session.refresh(timesheet)
    assert timesheet.synced
    assert timesheet.zoho_parent_id == "9000001"
    assert sorted(r.zoho_junction_id for r in timesheet.crew_rows) == ["8001", "8002"]
    assert_synced_invariant(db_session)


async def test_parent_payload_omits_zero_sundries(db_session, zoho_client, foreman, create_timesheet):
    timesheet = create_timesheet()
    zoho_client.create_junction.side_effect = ["8001", "8002"]

    await SyncService(zoho_client, db_session).sync_timesheet(timesheet.id)

    payload = zoho_client.create_timesheet.await_args.args[0]
    assert payload["Foreman"] == {"id": "5001"}
    assert payload["Job_Ticket"] == {"id": "4100001"}
    assert payload["Date"] == "2026-01-21"
    assert payload["Caulk_Tube"] == 3
    assert "Tip" not in payload
    assert payload["Total_Crew_Hours"] == 16.0


async def test_junction_payload_formats_datetimes(db_session, zoho_client, foreman, create_timesheet):
    timesheet = create_timesheet()
    zoho_client.create_junction.side_effect = ["8001", "8002"]

    await SyncService(zoho_client, db_session).sync_timesheet(timesheet.id)

    payloads = {c.args[0]["Painter"]["id"]: c.args[0] for c in zoho_client.create_junction.await_args_list}
    alex = payloads["7001"]
    assert alex["Time_Sheet"] == {"id": "9000001"}
    assert alex["Start_Time"].startswith("2026-01-21T07:00:00")
    assert alex["Lunch_Start"].startswith("2026-01-21T11:30:00")
    assert alex["Total_Hours"] == 8.0
    assert "Lunch_Start" not in payloads["7002"]


async def test_already_synced_makes_no_crm_calls(db_session, zoho_client, foreman, create_timesheet):
    timesheet = create_timesheet()
    zoho_client.create_junction.side_effect = ["8001", "8002"]
    service = SyncService(zoho_client, db_session)
    await service.sync_timesheet(timesheet.id)
    zoho_client.reset_mock()

    result = await service.sync_timesheet(timesheet.id)

    assert result.state is SyncState.FULLY_SYNCED
    zoho_client.create_timesheet.assert_not_awaited()
    zoho_client.create_junction.assert_not_awaited()


async def test_resume_after_junction_failure_does_not_duplicate_parent(
        db_session, zoho_client, foreman, create_timesheet):
    timesheet = create_timesheet()
    zoho_client.create_junction.side_effect = ZohoAPIError("Zoho rate limit reached", status_code=429)
    service = SyncService(zoho_client, db_session)

    first = await service.sync_timesheet(timesheet.id)

    assert first.state is SyncState.PARENT_CREATED
    assert first.junctions_failed == 2
    db_session.refresh(timesheet)
    assert timesheet.zoho_parent_id == "9000001"
    assert not timesheet.synced
    assert_synced_invariant(db_session)

    zoho_client.create_junction.side_effect = ["8001", "8002"]
    second = await service.sync_timesheet(timesheet.id)

    assert second.state is SyncState.FULLY_SYNCED
    assert zoho_client.create_timesheet.await_count == 1
    assert_synced_invariant(db_session)


async def test_row_failures_are_independent(db_session, zoho_client, foreman, create_timesheet):
    timesheet = create_timesheet()
    zoho_client.create_junction.side_effect = [ZohoAPIError("boom"), "8002"]
    service = SyncService(zoho_client, db_session)

    result = await service.sync_timesheet(timesheet.id)

    assert result.junctions_created == 1
    assert result.junctions_failed == 1
    rows = db_session.query(CrewTimeRow).filter(CrewTimeRow.timesheet_id == timesheet.id).all()
    assert sorted(bool(r.zoho_junction_id) for r in rows) == [False, True]

    zoho_client.create_junction.side_effect = ["8003"]
    retry = await service.sync_timesheet(timesheet.id)
    assert retry.junctions_created == 1
    assert zoho_client.create_junction.await_count == 3
    assert_synced_invariant(db_session)


async def test_parent_failure_leaves_state_unchanged(db_session, zoho_client, foreman, create_timesheet):
    timesheet = create_timesheet()
    zoho_client.create_timesheet.side_effect = ZohoAPIError("Zoho request timed out")

    result = await SyncService(zoho_client, db_session).sync_timesheet(timesheet.id)

    assert result.state is SyncState.UNSYNCED
    assert result.aborted_reason == "parent_failed"
    zoho_client.create_junction.assert_not_awaited()
    db_session.refresh(timesheet)
    assert timesheet.zoho_parent_id is None
    assert not timesheet.synced


async def test_unresolved_foreman_aborts_without_calls(db_session, zoho_client, create_timesheet):
    timesheet = create_timesheet()

    result = await SyncService(zoho_client, db_session).sync_timesheet(timesheet.id)

    assert result.aborted_reason == "foreman_unresolved"
    zoho_client.create_timesheet.assert_not_awaited()
    assert sync_state(timesheet) is SyncState.UNSYNCED


async def test_foreman_resolved_from_cache_map(db_session, zoho_client, cache: ProjectCache, create_timesheet):
    await cache.set_user_maps({"5009": "foreman@example.com"})
    timesheet = create_timesheet()
    zoho_client.create_junction.side_effect = ["8001", "8002"]

    await SyncService(zoho_client, db_session, cache=cache).sync_timesheet(timesheet.id)

    assert zoho_client.create_timesheet.await_args.args[0]["Foreman"] == {"id": "5009"}


async def test_non_crm_painter_ids_are_skipped(db_session, zoho_client, foreman, create_timesheet):
    timesheet = create_timesheet(painters=[
        {"painterId": "dummy-001", "painterName": "Alex Rivera", "startTime": "07:00", "endTime": "15:00"},
        {"painterId": "7002", "painterName": "Jordan Lee", "startTime": "07:00", "endTime": "15:00"},
    ])
    zoho_client.create_junction.side_effect = ["8002"]
    service = SyncService(zoho_client, db_session)

    result = await service.sync_timesheet(timesheet.id)

    assert result.junctions_skipped == 1
    assert result.junctions_created == 1
    assert result.state is SyncState.PARENT_CREATED
    db_session.refresh(timesheet)
    assert not timesheet.synced
    assert_synced_invariant(db_session)

    # Skipped rows stay skipped on every later attempt
    again = await service.sync_timesheet(timesheet.id)
    assert again.junctions_skipped == 1
    assert zoho_client.create_junction.await_count == 1


async def test_sync_with_recovery_retries_older_unsynced(db_session, zoho_client, foreman, create_timesheet):
    older = create_timesheet(date="2026-01-20")
    zoho_client.create_timesheet.side_effect = ZohoAPIError("down")
    await SyncService(zoho_client, db_session).sync_timesheet(older.id)

    newer = create_timesheet(date="2026-01-21")
    zoho_client.create_timesheet.side_effect = ["9000002", "9000003"]
    zoho_client.create_junction.side_effect = ["8001", "8002", "8003", "8004"]

    results = await SyncService(zoho_client, db_session).sync_with_recovery(newer.id, "user-1")

    assert [r.timesheet_id for r in results] == [newer.id, older.id]
    assert all(r.state is SyncState.FULLY_SYNCED for r in results)
    assert_synced_invariant(db_session)


async def test_retry_only_touches_same_user(db_session, zoho_client, foreman, create_timesheet):
    other = create_timesheet(user=CurrentUser(id="user-2", email="other@example.com"))
    mine = create_timesheet()
    zoho_client.create_junction.side_effect = ["8001", "8002"]

    results = await SyncService(zoho_client, db_session).sync_with_recovery(mine.id, "user-1")

    assert [r.timesheet_id for r in results] == [mine.id]
    db_session.refresh(other)
    assert other.zoho_parent_id is None


async def test_unexpected_error_does_not_stop_other_retries(
    db_session, zoho_client, foreman, create_timesheet, caplog
):
    first = create_timesheet(date="2026-01-19")
    second = create_timesheet(date="2026-01-20")
    zoho_client.create_timesheet.side_effect = [ValueError("unexpected token response"), "9000003"]
    zoho_client.create_junction.side_effect = ["8001", "8002"]

    results = await SyncService(zoho_client, db_session).retry_unsynced("user-1")

    assert len(results) == 1
    assert results[0].state is SyncState.FULLY_SYNCED
    assert zoho_client.create_timesheet.await_count == 2
    db_session.refresh(first)
    db_session.refresh(second)
    assert sorted(str(t.zoho_parent_id) for t in (first, second)) == ["9000003", "None"]
    assert "failed unexpectedly" in caplog.text
    assert_synced_invariant(db_session)
