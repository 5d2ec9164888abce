"""Tests for the job registry."""

import pytest

from speech_stitcher.errors import JobNotFoundError, ResultNotReadyError
from speech_stitcher.registry import JobRegistry
from speech_stitcher.streaming import StreamingJob


@pytest.fixture
def make_job(three_sentences, fake_backend):
    return lambda: StreamingJob(three_sentences, fake_backend)


def test_register_and_get(make_job):
    registry = JobRegistry()
    job = make_job()
    assert registry.register(job) == job.id
    assert registry.get(job.id) is job
    assert job.id in registry
    assert len(registry) == 1


def test_unknown_job():
    with pytest.raises(JobNotFoundError) as exc:
        JobRegistry().get("nope")
    assert exc.value.kind == "job_not_found"
    assert exc.value.job_id == "nope"


def test_last_writer_wins(make_job):
    registry = JobRegistry()
    first, second = make_job(), make_job()
    second.id = first.id
    registry.register(first)
    registry.register(second)
    assert registry.get(first.id) is second
    assert len(registry) == 1


def test_oldest_evicted(make_job):
    registry = JobRegistry(max_jobs=2)
    jobs = [make_job() for _ in range(3)]
    for job in jobs:
        registry.register(job)
    assert jobs[0].id not in registry
    assert jobs[1].id in registry and jobs[2].id in registry


def test_result(make_job):
    registry = JobRegistry()
    job = make_job()
    registry.register(job)
    with pytest.raises(ResultNotReadyError):
        registry.result(job.id)
    job.run()
    assert registry.result(job.id) == job.get_result()


def test_job_ids_unique(make_job):
    ids = {make_job().id for _ in range(20)}
    assert len(ids) == 20
    # 8 random bytes, url-safe base64 without padding
    assert all(len(i) == 11 and "=" not in i for i in ids)
