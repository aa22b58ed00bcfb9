"""Tests for the batch scheduler."""

import pytest

from app.core.errors import NoProfilesFoundError
from app.models import ProfileStatus
from app.worker.scheduler import BatchScheduler, RunOutcome, split_batches

from tests.conftest import ScriptedProvider, profile_urls


async def make_job(storage, path, total, batch_size=2):
    return await storage.create_job(1, path.name, str(path), total, batch_size)


async def run_job(storage, scheduler, job, path, is_active=lambda: True):
    profiles = await scheduler.materialize(job, str(path))
    job = await storage.get_job(job.id)
    return await scheduler.run(job, profiles, None, is_active=is_active)


def test_split_batches():
    assert split_batches(list(range(5)), 2) == [[0, 1], [2, 3], [4]]
    assert split_batches([], 2) == []
    assert split_batches([1, 2], 0) == [[1], [2]]


async def test_materialize_creates_pending_profiles_once(storage, settings, sheet_of):
    urls = profile_urls(3)
    path = sheet_of(urls)
    job = await make_job(storage, path, total=0)
    scheduler = BatchScheduler(storage, ScriptedProvider(), settings=settings)

    first = await scheduler.materialize(job, str(path))
    second = await scheduler.materialize(job, str(path))

    assert [p.profile_url for p in first] == urls
    assert [p.id for p in second] == [p.id for p in first]
    assert all(p.status == ProfileStatus.PENDING.value for p in first)
    assert (await storage.get_job(job.id)).total_profiles == 3
    # other cells of the source row are kept with the profile
    assert first[0].row_data == {"column_0": "Person 0"}


async def test_materialize_without_urls_raises(storage, settings, write_sheet):
    path = write_sheet([["just a name"], ["another name"]])
    job = await make_job(storage, path, total=0)
    scheduler = BatchScheduler(storage, ScriptedProvider(), settings=settings)

    with pytest.raises(NoProfilesFoundError):
        await scheduler.materialize(job, str(path))


async def test_run_records_outcomes_and_counters(storage, settings, sheet_of):
    urls = profile_urls(4)
    provider = ScriptedProvider(
        failures={urls[1]: "rate limit exceeded", urls[2]: "profile not found (HTTP 404)"}
    )
    path = sheet_of(urls)
    job = await make_job(storage, path, total=4)
    scheduler = BatchScheduler(storage, provider, settings=settings)

    outcome = await run_job(storage, scheduler, job, path)

    assert outcome is RunOutcome.COMPLETED
    job = await storage.get_job(job.id)
    assert job.processed_profiles == 4
    assert job.successful_profiles == 2
    assert job.failed_profiles == 2
    assert job.processed_profiles == job.successful_profiles + job.failed_profiles
    assert job.error_breakdown == {"rate_limit": 1, "not_found": 1}
    assert job.processing_rate.endswith("profiles/min")

    profiles = {p.profile_url: p for p in await storage.get_profiles_by_job(job.id)}
    assert profiles[urls[0]].status == ProfileStatus.SUCCESS.value
    assert profiles[urls[0]].profile_data["first_name"]
    assert profiles[urls[0]].extracted_at is not None
    assert profiles[urls[1]].retry_count == 3
    assert profiles[urls[2]].status == ProfileStatus.FAILED.value
    assert profiles[urls[2]].error_type == "not_found"
    assert profiles[urls[2]].retry_count == 1
    # not_found is never retried
    assert provider.calls.count(urls[2]) == 1


async def test_item_below_retry_limit_is_labelled_retrying(storage, settings, sheet_of):
    settings.max_retries = 1
    urls = profile_urls(2)
    provider = ScriptedProvider(failures={urls[0]: "captcha challenge required"})
    path = sheet_of(urls)
    job = await make_job(storage, path, total=2)
    scheduler = BatchScheduler(storage, provider, settings=settings)

    await run_job(storage, scheduler, job, path)

    job = await storage.get_job(job.id)
    assert job.retrying_profiles == 1
    assert job.processed_profiles == 1
    assert job.processed_profiles == job.successful_profiles + job.failed_profiles

    profile = (await storage.get_profiles_by_job(job.id))[0]
    assert profile.status == ProfileStatus.RETRYING.value
    assert profile.retry_count == 1
    assert profile.error_type == "captcha"


async def test_run_halts_at_batch_boundary(storage, settings, sheet_of):
    urls = profile_urls(5)
    checks = []

    def is_active():
        checks.append(True)
        # active for the first batch only
        return len(checks) == 1

    provider = ScriptedProvider()
    path = sheet_of(urls)
    job = await make_job(storage, path, total=5)
    scheduler = BatchScheduler(storage, provider, settings=settings)

    outcome = await run_job(storage, scheduler, job, path, is_active=is_active)

    assert outcome is RunOutcome.HALTED
    assert provider.calls == urls[:2]
    statuses = [p.status for p in await storage.get_profiles_by_job(job.id)]
    assert statuses == ["success", "success", "pending", "pending", "pending"]


async def test_run_paces_items_and_batches(storage, settings, sheet_of):
    settings.rate_limit_delay = 2.0
    settings.batch_delay = 5.0
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    urls = profile_urls(3)
    path = sheet_of(urls)
    job = await make_job(storage, path, total=3)
    scheduler = BatchScheduler(storage, ScriptedProvider(), settings=settings, sleep=fake_sleep)

    await run_job(storage, scheduler, job, path)

    # item, item, batch, item
    assert sleeps == [2.0, 2.0, 5.0, 2.0]
