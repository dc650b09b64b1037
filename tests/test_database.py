"""Tests for the SQLite job store and its compare-and-transition primitive."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from autoblog.errors import (
    DuplicateJobError,
    InvalidTransitionError,
    JobNotFoundError,
    StateConflictError,
)
from autoblog.jobs.database import JobRecord, JobState


def _record(job_id: str, queue: str = "content-generation", **kwargs) -> JobRecord:
    return JobRecord(job_id=job_id, queue_name=queue, payload={"topic": job_id}, **kwargs)


@pytest.mark.asyncio
async def test_put_and_get_round_trip(store):
    stored = await store.put(_record("gen_1"))
    assert stored.seq is not None

    fetched = await store.get("gen_1")
    assert fetched.state == JobState.WAITING
    assert fetched.payload == {"topic": "gen_1"}
    assert fetched.attempts == 0
    assert fetched.result is None


@pytest.mark.asyncio
async def test_put_duplicate_id_rejected(store):
    await store.put(_record("gen_1"))
    with pytest.raises(DuplicateJobError):
        await store.put(_record("gen_1"))


@pytest.mark.asyncio
async def test_get_unknown_job(store):
    with pytest.raises(JobNotFoundError):
        await store.get("missing")


@pytest.mark.asyncio
async def test_transition_applies_patch(store):
    await store.put(_record("gen_1"))
    active = await store.compare_and_transition(
        "gen_1", JobState.WAITING, JobState.ACTIVE, {"attempts": 1, "started_at": "t0"}
    )
    assert active.state == JobState.ACTIVE
    assert active.attempts == 1

    done = await store.compare_and_transition(
        "gen_1", JobState.ACTIVE, JobState.COMPLETED, {"result": {"ok": True}}
    )
    assert done.state == JobState.COMPLETED
    assert done.result == {"ok": True}


@pytest.mark.asyncio
async def test_transition_from_wrong_state_conflicts(store):
    await store.put(_record("gen_1"))
    with pytest.raises(StateConflictError) as exc_info:
        await store.compare_and_transition("gen_1", JobState.ACTIVE, JobState.COMPLETED)
    assert exc_info.value.actual == "waiting"
    assert (await store.get("gen_1")).state == JobState.WAITING


@pytest.mark.asyncio
async def test_transition_on_unknown_job(store):
    with pytest.raises(JobNotFoundError):
        await store.compare_and_transition("missing", JobState.WAITING, JobState.ACTIVE)


@pytest.mark.asyncio
async def test_expected_attempts_guards_stale_snapshot(store):
    await store.put(_record("gen_1", attempts=1))
    with pytest.raises(StateConflictError):
        await store.compare_and_transition(
            "gen_1", JobState.WAITING, JobState.ACTIVE, {"attempts": 1}, expected_attempts=0
        )


@pytest.mark.asyncio
async def test_terminal_states_are_final(store):
    await store.put(_record("gen_1"))
    await store.compare_and_transition("gen_1", JobState.WAITING, JobState.ACTIVE)
    await store.compare_and_transition(
        "gen_1", JobState.ACTIVE, JobState.FAILED, {"failure_reason": "boom"}
    )

    with pytest.raises(InvalidTransitionError):
        await store.compare_and_transition("gen_1", JobState.FAILED, JobState.WAITING)
    with pytest.raises(StateConflictError):
        await store.compare_and_transition("gen_1", JobState.ACTIVE, JobState.COMPLETED)
    assert (await store.get("gen_1")).state == JobState.FAILED


@pytest.mark.asyncio
async def test_skipping_active_is_not_allowed(store):
    await store.put(_record("gen_1"))
    with pytest.raises(InvalidTransitionError):
        await store.compare_and_transition("gen_1", JobState.WAITING, JobState.COMPLETED)


@pytest.mark.asyncio
async def test_result_only_on_completion(store):
    await store.put(_record("gen_1"))
    await store.compare_and_transition("gen_1", JobState.WAITING, JobState.ACTIVE)

    with pytest.raises(InvalidTransitionError):
        await store.compare_and_transition(
            "gen_1", JobState.ACTIVE, JobState.FAILED, {"result": {"partial": True}}
        )
    with pytest.raises(InvalidTransitionError):
        await store.compare_and_transition(
            "gen_1", JobState.ACTIVE, JobState.COMPLETED, {"failure_reason": "nope"}
        )
    with pytest.raises(InvalidTransitionError):
        await store.compare_and_transition(
            "gen_1", JobState.ACTIVE, JobState.ACTIVE, {"payload": {}}
        )


@pytest.mark.asyncio
async def test_concurrent_claims_have_one_winner(store):
    await store.put(_record("gen_1"))

    outcomes = await asyncio.gather(
        store.compare_and_transition("gen_1", JobState.WAITING, JobState.ACTIVE, {"attempts": 1}),
        store.compare_and_transition("gen_1", JobState.WAITING, JobState.ACTIVE, {"attempts": 1}),
        return_exceptions=True,
    )

    winners = [o for o in outcomes if isinstance(o, JobRecord)]
    losers = [o for o in outcomes if isinstance(o, StateConflictError)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert (await store.get("gen_1")).attempts == 1


@pytest.mark.asyncio
async def test_list_waiting_is_fifo_and_honours_available_at(store):
    await store.put(_record("gen_a"))
    await store.put(_record("gen_b", available_at=500.0))
    await store.put(_record("gen_c"))
    await store.put(_record("pub_x", queue="publishing"))

    eligible = await store.list_waiting("content-generation", now=100.0)
    assert [r.job_id for r in eligible] == ["gen_a", "gen_c"]

    later = await store.list_waiting("content-generation", now=500.0)
    assert [r.job_id for r in later] == ["gen_a", "gen_b", "gen_c"]

    assert await store.next_available_at("content-generation") == 0.0


@pytest.mark.asyncio
async def test_count_by_state_reports_every_state(store):
    await store.put(_record("gen_1"))
    counts = await store.count_by_state("content-generation")
    assert counts == {"waiting": 1, "active": 0, "completed": 0, "failed": 0}


@pytest.mark.asyncio
async def test_recent_jobs_newest_first(store):
    for job_id in ("gen_1", "gen_2", "gen_3"):
        await store.put(_record(job_id))
    recent = await store.get_recent_jobs(limit=2)
    assert [r.job_id for r in recent] == ["gen_3", "gen_2"]


@pytest.mark.asyncio
async def test_cleanup_removes_only_old_finished_jobs(store):
    old = (datetime.now(timezone.utc) - timedelta(days=40)).isoformat()
    await store.put(_record("gen_old_done", state=JobState.COMPLETED, created_at=old))
    await store.put(_record("gen_old_waiting", created_at=old))
    await store.put(_record("gen_new_done", state=JobState.COMPLETED))

    deleted = await store.cleanup_old_jobs(days=30)

    assert deleted == 1
    remaining = {r.job_id for r in await store.get_recent_jobs(limit=10)}
    assert remaining == {"gen_old_waiting", "gen_new_done"}
