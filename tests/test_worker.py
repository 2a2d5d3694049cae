from __future__ import annotations

import asyncio
import threading

import allure

from core.readiness import ClientRegistry
from schemas.job_models import JobDescriptor
from worker import run_worker

pytestmark = [allure.epic("Pipeline"), allure.feature("Worker process")]


def _message(job_id: str, prompt: str, count: int) -> dict:
    job = JobDescriptor(
        correlation_id=job_id,
        prompt=prompt,
        image_count=count,
        conversation_id="C123",
        message_ref=f"ts-{job_id}",
        requester_id="U_FOX",
    )
    return {"MessageId": f"m-{job_id}", "ReceiptHandle": f"rh-{job_id}", "Body": job.to_wire()}


def test_worker_processes_queue_until_stopped(client_factories, backend, sqs, s3, slack) -> None:
    sqs.pending = [
        _message("job1", "a red fox", 2),
        {"MessageId": "m-bad", "ReceiptHandle": "rh-bad", "Body": "garbage"},
        _message("job2", "a blue owl", 1),
    ]

    async def scenario() -> None:
        stop = asyncio.Event()
        registry = ClientRegistry(**client_factories, on_failure=lambda n, e: None)
        worker = asyncio.create_task(run_worker(registry=registry, backend=backend, stop=stop))

        for _ in range(200):
            if {"job1_1.png", "job2_0.png"} <= set(s3.objects):
                break
            await asyncio.sleep(0.01)
        stop.set()
        await asyncio.wait_for(worker, timeout=5)

    asyncio.run(scenario())

    assert set(s3.objects) == {"job1_0.png", "job1_1.png", "job2_0.png"}
    assert sqs.deleted == ["rh-job1", "rh-job2"]
    assert sqs.made_visible == ["rh-bad"]
    assert [call[0] for call in backend.calls] == ["a red fox", "a blue owl"]
    assert slack.texts_for("ts-job1")[-1] == "images"
    assert slack.texts_for("ts-job2")[-1] == "images"


def test_batch_is_acked_while_generation_is_in_progress(client_factories, backend, sqs, s3) -> None:
    backend.gate = threading.Event()
    sqs.pending = [_message(f"j{i}", f"prompt {i}", 1) for i in range(6)]

    async def scenario() -> list[str]:
        stop = asyncio.Event()
        registry = ClientRegistry(**client_factories, on_failure=lambda n, e: None)
        worker = asyncio.create_task(run_worker(registry=registry, backend=backend, stop=stop))

        for _ in range(200):
            if backend.calls and len(sqs.deleted) == 6:
                break
            await asyncio.sleep(0.01)
        acked_during_generation = list(sqs.deleted)
        assert len(backend.calls) == 1

        backend.gate.set()
        for _ in range(300):
            if len(s3.objects) == 6:
                break
            await asyncio.sleep(0.01)
        stop.set()
        await asyncio.wait_for(worker, timeout=5)
        return acked_during_generation

    assert asyncio.run(scenario()) == [f"rh-j{i}" for i in range(6)]
    assert len(backend.calls) == 6
    assert set(s3.objects) == {f"j{i}_0.png" for i in range(6)}
