"""
=============================================================================
THREAD POOL
=============================================================================

A fixed set of worker threads pulling connection tasks from a bounded
queue.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Thread Pool                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   accept loop ──submit()──► [ task ][ task ][ task ] ... (bounded)   │
    │                                   │                                  │
    │                                   │ get()                            │
    │                                   ▼                                  │
    │          ┌──────────┐ ┌──────────┐ ┌──────────┐ ┌──────────┐        │
    │          │ Worker 0 │ │ Worker 1 │ │ Worker 2 │ │ Worker 3 │        │
    │          └──────────┘ └──────────┘ └──────────┘ └──────────┘        │
    │                                                                      │
    │   queue full → submit() returns False → server answers 503          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Each task is one connection. A worker owns that connection for its whole
keep-alive lifetime, including a slow upload, so a stalled client costs
exactly one worker and nothing else.

=============================================================================
POISON PILLS
=============================================================================

Shutdown puts one None per worker on the queue. A worker that pulls None
exits. Because the queue is FIFO, tasks submitted before shutdown are
still served first when wait=True. If the queue is full there is no room
for the pills, so the oldest waiting tasks are dropped to make room and
shutdown never blocks on a stalled worker.

=============================================================================
INTERVIEW QUESTIONS ABOUT THREAD POOLS
=============================================================================

Q: "Why threads and not asyncio for an HTTP server?"
A: "Handlers here are synchronous and the load is a test suite, not the
   internet. Threads keep each connection's code a straight line:
   read, dispatch, write. The GIL is released during socket I/O, which
   is all this server does."

Q: "Why a bounded queue?"
A: "An unbounded queue turns overload into unbounded memory and latency.
   Bounded, the server can say 503 right away."

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional


logger = logging.getLogger(__name__)


@dataclass
class Task:
    """A deferred call: run func(*args) on some worker."""

    func: Callable[..., Any]
    args: tuple = ()
    submitted_at: float = field(default_factory=time.monotonic)


class Worker(threading.Thread):
    """
    Worker thread.

    Loop: get a task, stop on a poison pill, otherwise run it and log
    anything it raises so one bad connection never kills the worker.
    """

    def __init__(self, task_queue: "queue.Queue[Optional[Task]]", worker_id: int):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while True:
            task = self.task_queue.get()
            try:
                if task is None:
                    break
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        try:
            task.func(*task.args)
        except Exception as e:
            waited = time.monotonic() - task.submitted_at
            logger.exception(f"Worker {self.worker_id} task failed ({waited:.3f}s since submit): {e}")


class ThreadPool:
    """
    Fixed-size thread pool.

        pool = ThreadPool(workers=8, queue_size=100)
        pool.start()
        if not pool.submit(handle_connection, args=(conn,)):
            ...  # overloaded
        pool.shutdown(wait=True, timeout=10)
    """

    def __init__(self, workers: int = 8, queue_size: int = 100):
        self.num_workers = workers
        self.queue_size = queue_size

        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=queue_size)
        self._workers: List[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutdown = False

    def start(self):
        with self._lock:
            if self._started:
                return

            logger.info(f"Starting thread pool with {self.num_workers} workers")
            for worker_id in range(self.num_workers):
                worker = Worker(self._task_queue, worker_id)
                self._workers.append(worker)
                worker.start()

            self._started = True

    def submit(self, func: Callable[..., Any], args: tuple = ()) -> bool:
        """
        Queue a task without blocking.

        Returns:
            True if queued, False if the queue is full.

        Raises:
            RuntimeError: If the pool is not started or is shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        try:
            self._task_queue.put_nowait(Task(func=func, args=args))
            return True
        except queue.Full:
            return False

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the workers.

        Args:
            wait: Join the workers (they finish queued tasks first).
            timeout: Upper bound for the whole join, None for no bound.
        """
        with self._lock:
            if self._shutdown or not self._started:
                self._shutdown = True
                return
            self._shutdown = True

        logger.info("Shutting down thread pool...")

        dropped = self._queue_poison_pills()
        if dropped:
            logger.warning(f"Dropped {dropped} queued tasks to stop the workers")

        if not wait:
            return

        deadline = None if timeout is None else time.monotonic() + timeout
        for worker in self._workers:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            worker.join(timeout=remaining)

        alive = [w.name for w in self._workers if w.is_alive()]
        if alive:
            logger.warning(f"Workers still running after shutdown timeout: {', '.join(alive)}")
        else:
            logger.info("Thread pool stopped")

    def _queue_poison_pills(self) -> int:
        """Queue one None per worker, evicting waiting tasks when full."""
        dropped = 0
        for _ in self._workers:
            while True:
                try:
                    self._task_queue.put_nowait(None)
                    break
                except queue.Full:
                    pass
                try:
                    evicted = self._task_queue.get_nowait()
                except queue.Empty:
                    continue
                self._task_queue.task_done()
                if evicted is None:
                    # queue holds only pills; extra workers are left to the join timeout
                    self._task_queue.put_nowait(None)
                    return dropped
                dropped += 1
        return dropped
