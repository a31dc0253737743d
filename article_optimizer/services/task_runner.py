"""Bounded worker pool for background pipeline runs."""

import asyncio
import logging
import uuid
from asyncio import Queue
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from ..config import get_settings
from ..schemas import TaskRecord, TaskStatus

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[Any]]


@dataclass
class _QueuedTask:
    record: TaskRecord
    operation: Operation
    done: asyncio.Event


class PipelineTaskRunner:
    """
    Runs submitted pipeline operations on a fixed number of workers.

    Callers get a :class:`TaskRecord` back immediately and can poll it or
    ``await wait(task_id)``; failures are recorded on the record, never
    raised to the submitter.
    """

    def __init__(self, max_workers: Optional[int] = None, max_queue_size: int = 1000,
                 max_finished_records: int = 500):
        self.max_workers = max(1, max_workers or get_settings().max_workers)
        self.max_queue_size = max_queue_size
        self.max_finished_records = max_finished_records

        self.queue: Optional[Queue] = None
        self.running = False
        self.worker_tasks: List[asyncio.Task] = []
        self.records: Dict[str, TaskRecord] = {}
        self._events: Dict[str, asyncio.Event] = {}
        self._article_locks: Dict[int, asyncio.Lock] = {}
        self._lock_users: Dict[int, int] = {}
        self.stats = {
            'submitted': 0,
            'succeeded': 0,
            'failed': 0,
        }

    async def start(self):
        """Start the worker pool."""
        if self.running:
            logger.warning("Task runner already running")
            return

        self.queue = Queue(maxsize=self.max_queue_size)
        self.running = True
        for i in range(self.max_workers):
            self.worker_tasks.append(asyncio.create_task(self._worker(worker_id=i)))
        logger.info(f"🚀 Task runner started: {self.max_workers} workers")

    async def stop(self):
        """Stop the worker pool; queued tasks that never ran stay queued."""
        if not self.running:
            return

        self.running = False
        for task in self.worker_tasks:
            task.cancel()
        if self.worker_tasks:
            await asyncio.gather(*self.worker_tasks, return_exceptions=True)
        self.worker_tasks.clear()
        logger.info("🛑 Task runner stopped")

    async def submit(self, kind: str, operation: Operation, article_id: Optional[int] = None) -> TaskRecord:
        """Queue ``operation`` and return its record without waiting for it."""
        if not self.running:
            await self.start()

        record = TaskRecord(task_id=f"{kind}_{uuid.uuid4().hex[:12]}", kind=kind, article_id=article_id)
        done = asyncio.Event()
        self.records[record.task_id] = record
        self._events[record.task_id] = done
        self.stats['submitted'] += 1

        await self.queue.put(_QueuedTask(record=record, operation=operation, done=done))
        logger.info(f"📥 Queued {record.task_id}")
        return record

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        return self.records.get(task_id)

    def list_tasks(self, kind: Optional[str] = None) -> List[TaskRecord]:
        return [r for r in self.records.values() if kind is None or r.kind == kind]

    @asynccontextmanager
    async def article_lock(self, article_id: int) -> AsyncIterator[None]:
        """Advisory lock serializing work on one article.

        The lock is dropped once its last holder or waiter leaves.
        """
        lock = self._article_locks.get(article_id)
        if lock is None:
            lock = self._article_locks[article_id] = asyncio.Lock()
        self._lock_users[article_id] = self._lock_users.get(article_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[article_id] -= 1
            if not self._lock_users[article_id]:
                del self._lock_users[article_id]
                del self._article_locks[article_id]

    def is_article_locked(self, article_id: int) -> bool:
        lock = self._article_locks.get(article_id)
        return lock is not None and lock.locked()

    async def wait(self, task_id: str, timeout: Optional[float] = None) -> TaskRecord:
        """Block until the task finishes (or ``timeout`` passes) and return its record."""
        record = self.records[task_id]
        event = self._events[task_id]
        await asyncio.wait_for(event.wait(), timeout=timeout)
        return record

    async def join(self):
        """Wait until every queued task has been processed."""
        if self.queue is not None:
            await self.queue.join()

    async def _worker(self, worker_id: int):
        worker_name = f"pipeline_worker_{worker_id}"
        logger.debug(f"⚙️ {worker_name} started")

        try:
            while self.running:
                try:
                    task = await asyncio.wait_for(self.queue.get(), timeout=1.0)
                except asyncio.TimeoutError:
                    # Normal timeout, continue loop
                    continue
                try:
                    await self._process_task(task, worker_name)
                finally:
                    self.queue.task_done()
        except asyncio.CancelledError:
            logger.debug(f"⚙️ {worker_name} cancelled")

    async def _process_task(self, task: _QueuedTask, worker_name: str):
        record = task.record
        record.status = TaskStatus.RUNNING
        record.started_at = datetime.utcnow()
        logger.info(f"▶️ {worker_name} running {record.task_id}")

        try:
            record.result = await task.operation()
            record.status = TaskStatus.SUCCEEDED
            self.stats['succeeded'] += 1
            logger.info(f"✅ {worker_name} completed {record.task_id}")
        except Exception as e:
            record.status = TaskStatus.FAILED
            record.error = f"{type(e).__name__}: {e}"
            self.stats['failed'] += 1
            logger.error(f"❌ {worker_name} failed {record.task_id}: {e}")
        finally:
            record.finished_at = datetime.utcnow()
            task.done.set()
            self._prune_finished()

    def _prune_finished(self):
        """Forget the oldest finished records beyond the retention limit."""
        finished = [task_id for task_id, record in self.records.items() if record.done]
        for task_id in finished[:max(0, len(finished) - self.max_finished_records)]:
            del self.records[task_id]
            self._events.pop(task_id, None)

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self.stats,
            'queue_size': self.queue.qsize() if self.queue is not None else 0,
            'total_workers': len(self.worker_tasks),
            'running': self.running,
        }
