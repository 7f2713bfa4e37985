"""
=============================================================================
FIXED-SIZE THREAD POOL
=============================================================================

A fixed set of worker threads draining one shared job queue. This is what
bounds how many connections the server handles at the same time.

=============================================================================
WHY A FIXED POOL?
=============================================================================

Thread-per-connection has no upper bound:

    for connection in accept_connections():
        Thread(target=handle, args=(connection,)).start()   ← unbounded

A fixed pool caps concurrency at N no matter how many clients show up.
Extra connections wait in the queue instead of spawning more threads:

    pool = ThreadPool.build(4)
    for connection in accept_connections():
        pool.execute(handle, connection)                    ← never blocks

=============================================================================
THREAD POOL ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Thread Pool (size = 4)                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │                      JOB QUEUE                               │   │
    │   │  [Job 1] [Job 2] [Job 3] [Job 4] [Job 5] ...                │   │
    │   │                                                              │   │
    │   │  • queue.Queue, unbounded: execute() never waits            │   │
    │   │  • FIFO: jobs start in submission order                     │   │
    │   └──────────────────────┬──────────────────────────────────────┘   │
    │                          │ get()                                     │
    │                          ▼                                           │
    │   ┌──────────┐ ┌──────────┐ ┌──────────┐ ┌──────────┐              │
    │   │ Worker 0 │ │ Worker 1 │ │ Worker 2 │ │ Worker 3 │              │
    │   │ (idle)   │ │ (busy)   │ │ (busy)   │ │ (idle)   │              │
    │   └──────────┘ └──────────┘ └──────────┘ └──────────┘              │
    │                                                                      │
    │   At most 4 jobs run at any instant. Completion order across        │
    │   workers is not guaranteed.                                         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
SHUTDOWN: POISON PILLS BEHIND THE WORK
=============================================================================

shutdown() appends one None ("poison pill") per worker to the END of the
queue. Because the queue is FIFO, every job submitted before shutdown()
is dequeued before any pill. So:

    • workers finish their current job,
    • drain whatever is still queued,
    • then each swallows one pill and exits.

No queued job is dropped. execute() after shutdown() raises PoolClosed.

=============================================================================
FAILING JOBS
=============================================================================

A job that raises does NOT kill its worker. The exception is logged with
its traceback, counted in stats["tasks"]["failed"], and the worker goes
back to the queue for the next job.

=============================================================================
INTERVIEW QUESTIONS
=============================================================================

Q: What happens if every worker is stuck on a slow client?
A: New connections pile up in the queue until a worker frees up. There is
   no per-connection timeout, so N stalled clients exhaust an N-worker
   pool. This is a known limitation of the design.

Q: Why an unbounded queue?
A: The only producer is the accept loop, and it must never block on
   anything but accept(). The kernel's listen backlog still limits how
   fast connections arrive.

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..errors import InvalidPoolSize


logger = logging.getLogger(__name__)


class PoolClosed(RuntimeError):
    """Raised by execute() once the pool has started shutting down."""


class WorkerState(Enum):
    """What a worker thread is doing right now."""
    IDLE = "idle"          # Waiting on the queue
    BUSY = "busy"          # Running a job
    STOPPED = "stopped"    # Swallowed a poison pill and exited


@dataclass
class Task:
    """
    A unit of work queued on the pool.

    For the HTTP server this is always dispatcher.dispatch(connection).
    """
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Worker thread that processes tasks from the queue.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Worker Loop                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. Wait for task from queue (blocking)                            │
    │          │                                                           │
    │          ├── None (poison pill) → exit loop, thread terminates      │
    │          │                                                           │
    │          └── Task → execute it                                       │
    │                                                                      │
    │   2. Execute the task                                               │
    │          ├── Try: task.func(*task.args, **task.kwargs)             │
    │          └── Catch: log the exception (don't crash worker)          │
    │                                                                      │
    │   3. task_done(), back to step 1                                    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘
    """

    def __init__(self, task_queue: "queue.Queue[Optional[Task]]", worker_id: int):
        # daemon=True: a forgotten pool never keeps the interpreter alive
        super().__init__(name=f"Worker-{worker_id}", daemon=True)

        self.task_queue = task_queue
        self.worker_id = worker_id

        self.state = WorkerState.IDLE

        # Metrics
        self.tasks_completed = 0
        self.tasks_failed = 0

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

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        """
        Run one task, keeping the worker alive whatever it does.

        Args:
            task: The task to execute.
        """
        self.state = WorkerState.BUSY
        start_time = time.time()
        waited = start_time - task.submitted_at

        try:
            task.func(*task.args, **task.kwargs)

            elapsed = time.time() - start_time
            logger.debug(
                f"Worker {self.worker_id} completed task in {elapsed:.3f}s "
                f"(queued {waited:.3f}s)"
            )
            self.tasks_completed += 1

        except BaseException as e:
            # One bad job, sys.exit() included, must not take the worker down with it.
            elapsed = time.time() - start_time
            logger.exception(
                f"Worker {self.worker_id} task failed after {elapsed:.3f}s: {e}"
            )
            self.tasks_failed += 1

        finally:
            self.state = WorkerState.IDLE


class ThreadPool:
    """
    Fixed-size thread pool.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      ThreadPool Usage                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   pool = ThreadPool.build(4)          # starts 4 workers            │
    │                                                                      │
    │   pool.execute(handle, conn)          # enqueue, returns at once    │
    │                                                                      │
    │   print(pool.stats)                   # {"workers": {...}, ...}     │
    │                                                                      │
    │   pool.shutdown()                     # drain queue, join workers   │
    │                                                                      │
    │   # or                                                               │
    │   with ThreadPool.build(4) as pool:                                 │
    │       pool.execute(handle, conn)                                    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘
    """

    def __init__(self, size: int):
        """
        Create the pool and start its workers.

        Prefer ThreadPool.build(size).

        Raises:
            InvalidPoolSize: If size < 1. No worker is started.
        """
        if size < 1:
            raise InvalidPoolSize(size)

        self._size = size
        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue()
        self._lock = threading.Lock()  # Orders execute() against shutdown()
        self._closed = False

        logger.info(f"Starting thread pool with {size} workers")
        self._workers: List[Worker] = [
            Worker(self._task_queue, worker_id) for worker_id in range(size)
        ]
        for worker in self._workers:
            worker.start()

    @classmethod
    def build(cls, size: int) -> "ThreadPool":
        """
        Build a pool of size workers.

        Raises:
            InvalidPoolSize: If size < 1.
        """
        return cls(size)

    def execute(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        """
        Queue func(*args, **kwargs) to run on exactly one worker.

        Never blocks beyond the queue's internal lock.

        Raises:
            PoolClosed: If shutdown() has already been called.
        """
        task = Task(func=func, args=args, kwargs=kwargs)
        with self._lock:
            if self._closed:
                raise PoolClosed("Thread pool is shut down")
            self._task_queue.put(task)

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """
        Close the queue and let the workers drain it.

        ┌─────────────────────────────────────────────────────────────────┐
        │                    shutdown() Flow                               │
        ├─────────────────────────────────────────────────────────────────┤
        │   1. Mark closed (execute() now raises PoolClosed)              │
        │   2. Append one poison pill per worker behind pending jobs      │
        │   3. If wait=True: join every worker                            │
        └─────────────────────────────────────────────────────────────────┘

        Safe to call more than once.

        Args:
            wait: Block until all workers have exited.
            timeout: Per-worker join timeout in seconds. None waits as long
                     as the queued jobs take.
        """
        with self._lock:
            if not self._closed:
                logger.info("Shutting down thread pool...")
                self._closed = True
                for _ in self._workers:
                    self._task_queue.put(None)

        if not wait:
            return

        for worker in self._workers:
            if worker is threading.current_thread():
                continue  # A job shutting down its own pool can't join itself
            worker.join(timeout)
            if worker.is_alive():
                logger.warning(f"Worker {worker.worker_id} still running after shutdown timeout")

        logger.info("Thread pool shutdown complete")

    def __enter__(self) -> "ThreadPool":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown(wait=True)
        return False

    # =========================================================================
    # MONITORING: Check pool status
    # =========================================================================

    @property
    def size(self) -> int:
        """Configured number of workers."""
        return self._size

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def active_workers(self) -> int:
        """Workers that have not exited yet."""
        return sum(1 for w in self._workers if w.state != WorkerState.STOPPED)

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def idle_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.IDLE)

    @property
    def queue_size(self) -> int:
        """Jobs (and pills) waiting in the queue."""
        return self._task_queue.qsize()

    @property
    def stats(self) -> dict:
        """
        Get thread pool statistics.

        Returns a dict with worker and task counts, handy for logging and
        tests.
        """
        return {
            "workers": {
                "total": len(self._workers),
                "active": self.active_workers,
                "busy": self.busy_workers,
                "idle": self.idle_workers,
            },
            "tasks": {
                "queued": self.queue_size,
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
