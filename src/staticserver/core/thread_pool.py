"""
=============================================================================
THREAD POOL
=============================================================================

Worker threads pulling connection tasks from a shared, bounded queue.

=============================================================================
ONE CONNECTION = ONE TASK
=============================================================================

A static file server spends most of its time inside sendall(), waiting
for slow clients to drain their receive windows. Blocking I/O in a
worker thread is the simplest model that keeps this correct:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   accept() ──► submit(process_connection, conn)                     │
    │                          │                                           │
    │                          ▼                                           │
    │              ┌─────────────────────┐                                │
    │              │     Task Queue      │  bounded: queue_size           │
    │              └──────────┬──────────┘                                │
    │            ┌────────────┼────────────┐                              │
    │            ▼            ▼            ▼                              │
    │        Worker-0     Worker-1  ...  Worker-N   (min..max workers)    │
    │        read/parse   streaming      idle                             │
    │        dispatch     a 2 GB file                                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A worker holds its connection for the whole keep-alive session, so
max_workers bounds the number of concurrent transfers. When queued and
running tasks outnumber the workers, the pool grows by one worker.

The GIL is released during socket and file I/O, so threads give real
concurrency for this workload.

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    """Worker thread states."""
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """
    A deferred call: run func(*args, **kwargs) on some worker.

    Attributes:
        func: The function to execute.
        args: Positional arguments for the function.
        kwargs: Keyword arguments for the function.
        timeout: Max seconds the task may wait in the queue before it
                 is dropped as stale. None waits forever.
        submitted_at: Time the task was queued.
    """
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    timeout: Optional[float] = None
    submitted_at: float = field(default_factory=time.time)

    @property
    def waited(self) -> float:
        """Seconds since the task was queued."""
        return time.time() - self.submitted_at


class Worker(threading.Thread):
    """
    Worker thread that runs tasks from the queue until it is told to stop.

    A None in the queue is the stop signal (poison pill). Task failures
    are logged and counted; they never kill the worker.
    """

    def __init__(
        self,
        task_queue: queue.Queue,
        worker_id: int,
        idle_timeout: float = 60.0
    ):
        # Daemon threads never keep the interpreter alive on exit
        super().__init__(name=f"Worker-{worker_id}", daemon=True)

        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._shutdown.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if task is None:
                    break
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        """Run one task, tracking state and outcome."""
        if task.timeout is not None and task.waited > task.timeout:
            logger.warning(
                f"Dropping stale task (waited {task.waited:.2f}s, "
                f"timeout was {task.timeout}s)"
            )
            self.tasks_failed += 1
            return

        self.state = WorkerState.BUSY
        start_time = time.time()

        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
            logger.debug(
                f"Worker {self.worker_id} completed task in "
                f"{time.time() - start_time:.3f}s"
            )
        except Exception as e:
            self.tasks_failed += 1
            logger.exception(
                f"Worker {self.worker_id} task failed after "
                f"{time.time() - start_time:.3f}s: {e}"
            )
        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        """Signal the worker to stop after its current task."""
        self._shutdown.set()


class ThreadPool:
    """
    Bounded, growable pool of worker threads.

        pool = ThreadPool(min_workers=4, max_workers=16)
        pool.start()
        pool.submit(process_connection, args=(conn,), block=False)
        ...
        pool.shutdown(wait=False)
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        queue_size: int = 100,
        idle_timeout: float = 1.0
    ):
        """
        Initialize the thread pool.

        Args:
            min_workers: Workers created by start().
            max_workers: Upper bound reached by scaling up under load.
            queue_size: Max queued tasks; submit() blocks or fails beyond it.
            idle_timeout: Seconds an idle worker waits before re-checking
                          for shutdown.
        """
        if min_workers < 1 or max_workers < min_workers:
            raise ValueError(
                f"Invalid worker bounds: min={min_workers}, max={max_workers}"
            )

        self.min_workers = min_workers
        self.max_workers = max_workers
        self.queue_size = queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: queue.Queue[Optional[Task]] = queue.Queue(maxsize=queue_size)

        self._workers: list[Worker] = []
        self._lock = threading.Lock()  # guards _workers
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    @property
    def is_running(self) -> bool:
        return self._started and not self._shutdown

    def start(self):
        """Start the pool with min_workers threads. Idempotent."""
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers")
        self._shutdown = False
        with self._lock:
            for _ in range(self.min_workers):
                self._add_worker()
        self._started = True

    def _add_worker(self) -> Worker:
        """Create and start one worker. Caller holds self._lock."""
        worker = Worker(
            task_queue=self._task_queue,
            worker_id=self._next_worker_id,
            idle_timeout=self.idle_timeout
        )
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        timeout: Optional[float] = None,
        block: bool = True,
        queue_timeout: Optional[float] = None
    ) -> bool:
        """
        Queue a task.

        Args:
            func: The function to execute.
            args: Positional arguments for the function.
            kwargs: Keyword arguments for the function.
            timeout: Max seconds the task may wait in the queue.
            block: Whether to wait for room when the queue is full.
            queue_timeout: How long to wait for room when blocking.

        Returns:
            True if the task was queued, False if the queue was full.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(func=func, args=args, kwargs=kwargs or {}, timeout=timeout)

        try:
            self._task_queue.put(task, block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        """
        Add a worker if tasks outnumber workers and we're under max.

        Tasks are counted from put() until task_done(), so a task a worker
        has dequeued but not yet started still counts.
        """
        with self._lock:
            live = [w for w in self._workers if w.state != WorkerState.STOPPED]
            in_flight = self._task_queue.unfinished_tasks

            if len(live) >= self.max_workers or in_flight <= len(live):
                return

            logger.debug(f"Scaling up: {len(live)} -> {len(live) + 1} workers")
            self._workers = live
            self._add_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the pool.

        Args:
            wait: Let queued tasks finish first. If False, they are dropped.
            timeout: Max seconds to wait for the queue to drain and for
                     each worker to exit. None waits for the queue
                     indefinitely.
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        self._shutdown = True

        if wait:
            if timeout:
                deadline = time.time() + timeout
                while self._task_queue.unfinished_tasks:
                    if time.time() > deadline:
                        logger.warning("Shutdown timeout, forcing stop")
                        break
                    time.sleep(0.05)
            else:
                self._task_queue.join()
        else:
            self._drain_queue()

        with self._lock:
            workers = list(self._workers)
            self._workers.clear()

        for worker in workers:
            worker.shutdown()
        for _ in workers:
            try:
                self._task_queue.put(None, block=False)
            except queue.Full:
                break

        for worker in workers:
            worker.join(timeout=timeout or 2.0)

        self._started = False
        logger.info("Thread pool shutdown complete")

    def _drain_queue(self):
        """Discard tasks that no worker has picked up yet."""
        while True:
            try:
                self._task_queue.get_nowait()
            except queue.Empty:
                return
            self._task_queue.task_done()

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def idle_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.IDLE)

    @property
    def stats(self) -> dict:
        """Worker and task counts."""
        return {
            "workers": {
                "total": len(self._workers),
                "busy": self.busy_workers,
                "idle": self.idle_workers,
            },
            "tasks": {
                "queued": self._task_queue.qsize(),
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
