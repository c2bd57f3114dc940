import asyncio

import httpx
import pytest

from neongen.schemas.training import TrainingStatus
from neongen.services.fal_client import FalClient
from neongen.services.training_poller import (
    TrainingStatusPoller,
    estimate_training_progress,
    merge_remote_logs,
)

from conftest import CONFIG_URL, WEIGHTS_URL, completed_job, make_job


def remote_logs(count, start=0):
    return [{"message": f"step {i}", "level": "INFO"} for i in range(start, start + count)]


@pytest.fixture
def poller(store, fal_client, config):
    return TrainingStatusPoller(store, fal_client, config=config)


def test_progress_estimate_is_capped():
    assert estimate_training_progress(0) == 10
    assert estimate_training_progress(10) == 30
    assert estimate_training_progress(40) == 90
    assert estimate_training_progress(500) == 90


def test_merge_remote_logs_appends_only_new_lines():
    job = make_job(logs=["local"])

    assert merge_remote_logs(job, ["a", "b"]) == 2
    assert merge_remote_logs(job, ["a", "b", "c"]) == 1
    assert job.logs == ["local", "a", "b", "c"]
    assert job.remote_log_cursor == 3


def test_merge_remote_logs_restarted_history():
    job = make_job(remote_log_cursor=5)

    merge_remote_logs(job, ["fresh"])

    assert job.logs == ["fresh"]
    assert job.remote_log_cursor == 1


async def test_unknown_job_returns_failed_snapshot(poller, fake_fal):
    snapshot = await poller.poll("nope")

    assert snapshot.status == TrainingStatus.FAILED
    assert snapshot.progress == 0
    assert snapshot.error_message == "Style record not found"
    assert fake_fal.calls == []


async def test_in_progress_maps_to_training_with_estimated_progress(poller, store, fake_fal):
    store.set(make_job("job-1"))
    fake_fal.status_payloads = [{"status": "IN_PROGRESS", "logs": remote_logs(40)}]

    snapshot = await poller.poll("job-1")

    assert snapshot.status == TrainingStatus.TRAINING
    assert snapshot.progress == 90
    assert snapshot.logs == ["step 35", "step 36", "step 37", "step 38", "step 39"]
    assert store.get("job-1").progress == 90


async def test_in_queue_maps_to_pending(poller, store, fake_fal):
    store.set(make_job("job-1", progress=0))
    fake_fal.status_payloads = [{"status": "IN_QUEUE", "queue_position": 3, "logs": None}]

    snapshot = await poller.poll("job-1")

    assert snapshot.status == TrainingStatus.PENDING
    assert snapshot.progress >= 5


async def test_progress_never_decreases(poller, store, fake_fal):
    store.set(make_job("job-1", progress=30))
    fake_fal.status_payloads = [
        {"status": "IN_PROGRESS", "logs": remote_logs(2)},
        {"status": "IN_QUEUE", "logs": remote_logs(2)},
    ]

    first = await poller.poll("job-1")
    second = await poller.poll("job-1")

    assert first.progress == 30
    assert second.progress == 30


async def test_completed_resolves_artifact(poller, store, fake_fal):
    store.set(make_job("job-1"))
    fake_fal.status_payloads = [{"status": "COMPLETED", "logs": remote_logs(3)}]

    snapshot = await poller.poll("job-1")

    assert snapshot.status == TrainingStatus.COMPLETED
    assert snapshot.progress == 100
    assert snapshot.artifact_url == WEIGHTS_URL
    assert snapshot.trigger_word == "ohwx"
    assert snapshot.logs[-1] == "Training complete! LoRA weights ready."

    stored = store.get("job-1")
    assert stored.artifact_url == WEIGHTS_URL
    assert stored.config_url == CONFIG_URL


async def test_remote_failure_maps_to_failed(poller, store, fake_fal):
    store.set(make_job("job-1", progress=50))
    fake_fal.status_payloads = [{"status": "FAILED", "logs": []}]

    snapshot = await poller.poll("job-1")

    assert snapshot.status == TrainingStatus.FAILED
    assert snapshot.progress == 0
    assert snapshot.error_message == "Training failed on the remote provider"
    assert store.get("job-1").status == TrainingStatus.FAILED


async def test_terminal_job_is_served_from_cache(poller, store, fake_fal):
    store.set(completed_job("job-1"))

    first = await poller.poll("job-1")
    second = await poller.poll("job-1")

    assert fake_fal.calls == []
    assert first == second
    assert first.artifact_url == WEIGHTS_URL


async def test_job_without_remote_id_is_not_polled(poller, store, fake_fal):
    store.set(make_job("job-1", status=TrainingStatus.UPLOADING, progress=10, remote_request_id=None))

    snapshot = await poller.poll("job-1")

    assert snapshot.status == TrainingStatus.UPLOADING
    assert fake_fal.calls == []


async def test_logs_are_not_duplicated_across_polls(poller, store, fake_fal):
    store.set(make_job("job-1", logs=["Submitting training job..."]))
    fake_fal.status_payloads = [
        {"status": "IN_PROGRESS", "logs": remote_logs(2)},
        {"status": "IN_PROGRESS", "logs": remote_logs(4)},
        {"status": "IN_PROGRESS", "logs": remote_logs(4)},
    ]

    for _ in range(3):
        await poller.poll("job-1")

    assert store.get("job-1").logs == [
        "Submitting training job...", "step 0", "step 1", "step 2", "step 3",
    ]


async def test_transient_error_leaves_record_unchanged(poller, store, fake_fal):
    store.set(make_job("job-1", progress=42, logs=["a"]))
    before = store.get("job-1")
    fake_fal.raise_on("status", httpx.ConnectError("network down"))

    snapshot = await poller.poll("job-1")

    assert snapshot.status == TrainingStatus.TRAINING
    assert snapshot.progress == 42
    assert snapshot.error_message == "Training service unavailable. Please try again later."
    after = store.get("job-1")
    assert after.model_dump(exclude={"updated_at"}) == before.model_dump(exclude={"updated_at"})


async def test_provider_error_status_is_reported(poller, store, fake_fal):
    store.set(make_job("job-1"))
    fake_fal.fail("status", 500, "internal")

    snapshot = await poller.poll("job-1")

    assert snapshot.error_message == "Training status check failed: internal"
    assert store.get("job-1").status == TrainingStatus.TRAINING


async def test_result_shape_mismatch_is_reported(poller, store, fake_fal):
    store.set(make_job("job-1"))
    fake_fal.status_payloads = [{"status": "COMPLETED", "logs": []}]
    fake_fal.result_payload = {"unexpected": True}

    snapshot = await poller.poll("job-1")

    assert snapshot.status == TrainingStatus.TRAINING
    assert snapshot.error_message.startswith("Unexpected training result payload")
    assert store.get("job-1").artifact_url is None


async def test_slow_poll_does_not_overwrite_completed_job(store, config, fake_fal):
    store.set(make_job("job-1"))
    slow_started = asyncio.Event()
    release_slow = asyncio.Event()
    status_calls = []

    async def handler(request):
        if request.url.path.endswith("/status"):
            status_calls.append(request)
            if len(status_calls) == 1:
                slow_started.set()
                await release_slow.wait()
                return httpx.Response(200, json={"status": "IN_PROGRESS", "logs": remote_logs(3)})
            return httpx.Response(200, json={"status": "COMPLETED", "logs": remote_logs(3)})
        return httpx.Response(200, json=fake_fal.result_payload)

    client = FalClient(config=config, transport=httpx.MockTransport(handler))
    poller = TrainingStatusPoller(store, client, config=config)

    slow = asyncio.create_task(poller.poll("job-1"))
    await slow_started.wait()
    fast = await poller.poll("job-1")
    release_slow.set()
    stale = await slow
    await client.aclose()

    assert fast.status == TrainingStatus.COMPLETED
    assert stale.status == TrainingStatus.COMPLETED
    assert stale.artifact_url == WEIGHTS_URL

    stored = store.get("job-1")
    assert stored.status == TrainingStatus.COMPLETED
    assert stored.progress == 100
    assert stored.artifact_url == WEIGHTS_URL
