"""Tests for the bounded pipeline worker pool."""

import asyncio

import pytest

from article_optimizer.schemas import TaskStatus
from article_optimizer.services.task_runner import PipelineTaskRunner


@pytest.fixture
async def runner():
    runner = PipelineTaskRunner(max_workers=2)
    yield runner
    await runner.stop()


class TestPipelineTaskRunner:
    async def test_submit_returns_immediately(self, runner):
        gate = asyncio.Event()

        async def operation():
            await gate.wait()
            return "done"

        record = await runner.submit("crawl", operation)

        assert record.status in (TaskStatus.QUEUED, TaskStatus.RUNNING)
        assert runner.get_task(record.task_id) is record

        gate.set()
        finished = await runner.wait(record.task_id, timeout=5)
        assert finished.status == TaskStatus.SUCCEEDED
        assert finished.result == "done"
        assert finished.started_at is not None
        assert finished.finished_at >= finished.started_at

    async def test_failure_is_recorded(self, runner):
        async def operation():
            raise RuntimeError("boom")

        record = await runner.submit("optimize", operation, article_id=7)
        finished = await runner.wait(record.task_id, timeout=5)

        assert finished.status == TaskStatus.FAILED
        assert finished.error == "RuntimeError: boom"
        assert runner.get_stats()["failed"] == 1

    async def test_concurrency_is_bounded(self, runner):
        active = 0
        peak = 0

        async def operation():
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.02)
            active -= 1

        records = [await runner.submit("optimize", operation) for _ in range(6)]
        for record in records:
            await runner.wait(record.task_id, timeout=5)

        assert peak == 2
        assert all(r.status == TaskStatus.SUCCEEDED for r in records)

    async def test_article_lock_serializes_one_article(self, runner):
        order = []

        async def hold(tag):
            async with runner.article_lock(1):
                order.append(f"{tag}-in")
                await asyncio.sleep(0.01)
                order.append(f"{tag}-out")

        async with runner.article_lock(2):
            assert not runner.is_article_locked(1)
            await asyncio.gather(hold("a"), hold("b"))

        assert order == ["a-in", "a-out", "b-in", "b-out"]

    async def test_article_lock_is_dropped_when_released(self, runner):
        async with runner.article_lock(1):
            assert runner.is_article_locked(1)

        assert not runner.is_article_locked(1)
        assert runner._article_locks == {}

    async def test_finished_records_are_pruned(self):
        runner = PipelineTaskRunner(max_workers=1, max_finished_records=2)

        async def operation():
            return None

        records = [await runner.submit("optimize", operation, article_id=i) for i in range(5)]
        last = await runner.wait(records[-1].task_id, timeout=5)
        await runner.join()
        await runner.stop()

        assert last.status == TaskStatus.SUCCEEDED
        assert [r.task_id for r in runner.list_tasks()] == [r.task_id for r in records[-2:]]
        assert runner.get_task(records[0].task_id) is None

    async def test_records_listed_by_kind(self, runner):
        async def operation():
            return None

        crawl = await runner.submit("crawl", operation)
        await runner.submit("optimize", operation, article_id=3)
        await runner.join()

        assert runner.list_tasks("crawl") == [crawl]
        assert len(runner.list_tasks()) == 2
        assert crawl.to_dict()["status"] == "succeeded"
