"""Implementation of the parallel solver: worker pool lifecycle and outcome aggregation."""

import multiprocessing
import pickle
import queue
import sys
import threading
import traceback
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ProcessPoolExecutor
from concurrent.futures import wait as wait_futures
from dataclasses import dataclass
from multiprocessing.context import BaseContext
from multiprocessing.queues import Queue
from pprint import pprint
from time import time
from typing import TextIO

from sortedcontainers import SortedSet

from nqueens.solver.config import SolverConfig
from nqueens.solver.config import config as solver_config
from nqueens.solver.events import Outcome, OutcomeEvent, SnapshotEvent
from nqueens.solver.task_args import RunArgs
from nqueens.solver.utils import time_str
from nqueens.solver.worker import Result, StopFlag, init_worker_globals, worker_task

SnapshotCallback = Callable[[int, tuple[int, ...]], None]
OutcomeCallback = Callable[[int, Outcome], None]
SummaryCallback = Callable[[int, int], None]
ResetCallback = Callable[[], None]
WorkerTask = Callable[[int, int, int], Result]

POLL_INTERVAL = 0.05
"""Seconds the dispatcher blocks on the event queue before checking the worker futures."""

EVENT_QUEUE_SIZE = 256
"""Maximum number of undelivered events; workers block on a full queue until the sink
catches up."""


def get_executor(
    *,
    pool_size: int,
    events: Queue,
    stop_events: Sequence[StopFlag],
    step_delay: float,
    mp_context: BaseContext,
) -> ProcessPoolExecutor:
    """Get a ProcessPoolExecutor whose processes share the run's event queue and stop events.

    Args:
        pool_size (int): Number of worker processes to create.
        events (Queue): Queue the workers publish their events on.
        stop_events (Sequence[StopFlag]): One cancellation flag per worker.
        step_delay (float): Seconds each worker pauses after a placement.
        mp_context (BaseContext): Context the queue and events were created from.

    Returns:
        A ProcessPoolExecutor instance for worker processes.
    """
    process_ctr = mp_context.Value("i", 0)
    return ProcessPoolExecutor(
        max_workers=pool_size,
        mp_context=mp_context,
        initializer=init_worker_globals,
        initargs=(process_ctr, events, stop_events, step_delay),
    )


def terminate_workers(executor: ProcessPoolExecutor) -> None:
    """Terminate the worker processes of an executor immediately."""
    if hasattr(executor, "terminate_workers"):  # Python 3.14+
        executor.terminate_workers()
        return
    # No public API before 3.14 (unlike `multiprocessing.Pool.terminate()`), so reach
    # into the executor's process table.
    for process in list((executor._processes or {}).values()):
        if process.is_alive():
            process.terminate()


@dataclass
class RunSummary:
    """Aggregate result of one run."""

    solved_count: int
    total_count: int
    outcomes: dict[int, Outcome]
    """Terminal outcome of every worker, by worker id."""
    solutions: SortedSet
    """Distinct solutions found by the workers, in sorted order."""
    elapsed: float
    """Seconds between the start of the run and the last outcome."""

    def count(self, outcome: Outcome) -> int:
        return sum(1 for o in self.outcomes.values() if o is outcome)


class _Run:
    """State of one run of the parallel solver.  Discarded by `ParallelSolver.stop`."""

    def __init__(
        self,
        args: RunArgs,
        *,
        executor: ProcessPoolExecutor,
        events: Queue,
        stop_events: Sequence[StopFlag],
    ) -> None:
        self.args = args
        self.executor = executor
        self.events = events
        self.stop_events = stop_events

        self.futures: dict[int, Future[Result]] = {}
        self.outcomes: dict[int, Outcome] = {}
        self.solutions: dict[int, tuple[int, ...]] = {}

        self.settled: set[int] = set()
        """Workers whose future was seen done while their outcome event was still missing."""

        self.stopping = threading.Event()
        """Set by `stop`; from then on snapshots are discarded, only outcomes are delivered."""

        self.force_terminated = threading.Event()
        self.finished = threading.Event()
        """Set once the summary was delivered."""

        self.summary: RunSummary | None = None
        self.dispatcher: threading.Thread | None = None

    @property
    def pending(self) -> list[int]:
        """Ids of the workers without a terminal outcome."""
        return [wid for wid in self.args.worker_ids if wid not in self.outcomes]


class ParallelSolver:
    """Runs several randomized N-Queens searches concurrently in a process pool.

    Events reach the callbacks from a single dispatcher thread, in the order each worker
    produced them.  Callbacks must not call `start` or `stop`.
    """

    def __init__(
        self,
        *,
        on_snapshot: SnapshotCallback | None = None,
        on_outcome: OutcomeCallback | None = None,
        on_summary: SummaryCallback | None = None,
        on_reset: ResetCallback | None = None,
        config: SolverConfig | None = None,
        logf: TextIO | None = None,
        task: WorkerTask = worker_task,
    ) -> None:
        """Initialize the solver.  No worker is started until `start` is called.

        Args:
            on_snapshot: Called with `(worker_id, queens)` after every placement.
            on_outcome: Called with `(worker_id, outcome)` once per worker.
            on_summary: Called with `(solved_count, total_count)` once per run.
            on_reset: Called at the start of every run, before any other callback of the run.
            config (SolverConfig | None): Solver configuration.  Defaults to the module-level
                configuration loaded from the environment.
            logf: Text stream for the run log.  Defaults to `sys.stdout`.
            task (WorkerTask): Picklable function run in the pool for every worker, called
                with `(worker_id, n, seed)`.  Defaults to `worker_task`.
        """
        self.on_snapshot = on_snapshot
        self.on_outcome = on_outcome
        self.on_summary = on_summary
        self.on_reset = on_reset
        self.config = config if config is not None else solver_config
        self.logf = logf if logf is not None else sys.stdout
        self.task = task

        self.last_summary: RunSummary | None = None
        """Summary of the most recent run that completed."""

        self._run: _Run | None = None
        self._lock = threading.RLock()

    def __enter__(self) -> "ParallelSolver":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    @property
    def is_running(self) -> bool:
        """Whether a run was started and has not delivered its summary yet."""
        run = self._run
        return run is not None and not run.finished.is_set()

    def start(
        self,
        n: int,
        worker_count: int | None = None,
        step_delay: float | None = None,
    ) -> None:
        """Start a new run, stopping the previous one first.

        Args:
            n (int): Board size, must be positive.
            worker_count (int | None): Number of concurrent searches, at least 1.  Defaults to
                the configuration, see `RunArgs`.
            step_delay (float | None): Seconds each worker pauses after a placement.  Defaults
                to `config.step_delay`.

        Raises:
            InvalidArgumentError: For invalid arguments.  Nothing is stopped or started then.
        """
        args = RunArgs(n=n, worker_count=worker_count, step_delay=step_delay, config=self.config)
        with self._lock:
            self.stop()
            self._notify(self.on_reset)
            self._run = self._launch(args)

    def _launch(self, args: RunArgs) -> _Run:
        print("Solver config:", file=self.logf, flush=True)
        pprint(self.config.model_dump(), stream=self.logf, width=120)
        print("Run initialized with:", file=self.logf, flush=True)
        pprint(args.summary(), stream=self.logf, width=120)

        ctx = multiprocessing.get_context()
        events = ctx.Queue(maxsize=EVENT_QUEUE_SIZE)
        stop_events = [ctx.Event() for _ in args.worker_ids]
        executor = get_executor(
            pool_size=args.pool_size,
            events=events,
            stop_events=stop_events,
            step_delay=args.step_delay,
            mp_context=ctx,
        )
        run = _Run(args, executor=executor, events=events, stop_events=stop_events)

        print(
            f"Starting {args.worker_count} worker(s) on a {args.n}x{args.n} board...",
            file=self.logf,
            flush=True,
        )
        try:
            for worker_id, seed in zip(args.worker_ids, args.seeds):
                run.futures[worker_id] = executor.submit(self.task, worker_id, args.n, seed)
        except Exception as e:
            executor.shutdown(wait=False, cancel_futures=True)
            raise e

        run.dispatcher = threading.Thread(
            target=self._dispatch,
            args=(run,),
            name=f"nqueens-dispatcher-{args.n}",
            daemon=True,
        )
        run.dispatcher.start()
        return run

    def stop(self) -> None:
        """Stop the current run, if any.

        Requests every worker to stop, waits up to `config.stop_grace_period` seconds, then
        terminates the processes of the workers still running.  Returns once the run's summary
        was delivered; workers that did not report an outcome count as cancelled.
        """
        with self._lock:
            run = self._run
            if run is None:
                return
            self._run = None

            run.stopping.set()
            for stop_event in run.stop_events:
                stop_event.set()

            grace = self.config.stop_grace_period
            _, not_done = wait_futures(run.futures.values(), timeout=grace)
            if not_done:
                print(
                    f"{len(not_done)} worker(s) still running after {grace}s, terminating...",
                    file=self.logf,
                    flush=True,
                )
                run.force_terminated.set()
                terminate_workers(run.executor)

            if run.dispatcher is None or run.dispatcher is threading.current_thread():
                return
            run.dispatcher.join(timeout=grace + 1.0)
            if run.dispatcher.is_alive():
                # Workers may be blocked publishing to a queue nobody reads any more
                print("Dispatcher did not finish in time, terminating...", file=self.logf, flush=True)
                run.force_terminated.set()
                terminate_workers(run.executor)
                run.dispatcher.join(timeout=grace + 1.0)
            run.executor.shutdown(wait=False, cancel_futures=True)
            if not run.dispatcher.is_alive():
                run.events.close()

    def wait(self, timeout: float | None = None) -> RunSummary | None:
        """Wait for the current run to deliver its summary.

        Args:
            timeout (float | None): Maximum number of seconds to wait.  None waits forever.

        Returns:
            The run summary, or None on timeout.  Without a current run, the summary of the
            last completed run (None if there was none).
        """
        run = self._run
        if run is None:
            return self.last_summary
        if not run.finished.wait(timeout):
            return None
        return run.summary

    def _dispatch(self, run: _Run) -> None:
        """Deliver the run's events to the callbacks until every worker is terminal."""
        try:
            while run.pending:
                try:
                    event = run.events.get(timeout=POLL_INTERVAL)
                except queue.Empty:
                    self._resolve_settled(run)
                    continue
                except (EOFError, OSError, ValueError, pickle.UnpicklingError):
                    # A worker was terminated while writing to the queue, or the queue closed
                    print(traceback.format_exc(), file=self.logf, flush=True)
                    self._resolve_settled(run, final=True)
                    break

                if event.worker_id in run.outcomes:
                    continue  # Late event of a worker already resolved
                if isinstance(event, SnapshotEvent):
                    if not run.stopping.is_set():
                        self._notify(self.on_snapshot, event.worker_id, event.queens)
                elif isinstance(event, OutcomeEvent):
                    self._record(run, event.worker_id, event.outcome, event.queens, event.err_msg)
                else:
                    print(f"Unexpected event: {event!r}", file=self.logf, flush=True)

            self._summarize(run)
        finally:
            run.finished.set()
            run.executor.shutdown(wait=False)

    def _resolve_settled(self, run: _Run, *, final: bool = False) -> None:
        """Resolve workers whose outcome can no longer arrive through the event queue.

        A worker whose task returned normally gets one more poll interval for its outcome
        event before its future's result is used instead.
        """
        for worker_id in run.pending:
            future = run.futures[worker_id]
            if not future.done():
                if final or run.force_terminated.is_set():
                    self._record(run, worker_id, Outcome.CANCELLED, (), None)
                continue

            if future.cancelled():
                self._record(run, worker_id, Outcome.CANCELLED, (), None)
            elif (exc := future.exception()) is not None:
                outcome = Outcome.CANCELLED if run.force_terminated.is_set() else Outcome.FAILED
                self._record(run, worker_id, outcome, (), f"{type(exc).__name__}: {exc}")
            elif final or worker_id in run.settled:
                result = future.result()
                self._record(run, worker_id, result.outcome, result.queens, result.err_msg)
            else:
                run.settled.add(worker_id)

    def _record(
        self,
        run: _Run,
        worker_id: int,
        outcome: Outcome,
        queens: tuple[int, ...],
        err_msg: str | None,
    ) -> None:
        run.outcomes[worker_id] = outcome
        if outcome is Outcome.SOLVED:
            run.solutions[worker_id] = queens
        print(f"Worker {worker_id}: {outcome}", file=self.logf, flush=True)
        if err_msg:
            print(err_msg, file=self.logf, flush=True)
        self._notify(self.on_outcome, worker_id, outcome)

    def _summarize(self, run: _Run) -> None:
        elapsed = time() - run.args.start_time
        summary = RunSummary(
            solved_count=sum(1 for o in run.outcomes.values() if o is Outcome.SOLVED),
            total_count=run.args.worker_count,
            outcomes=dict(sorted(run.outcomes.items())),
            solutions=SortedSet(run.solutions.values()),
            elapsed=elapsed,
        )
        run.summary = summary
        self.last_summary = summary
        print(
            f"Completed in {time_str(elapsed)}. {summary.solved_count} solution(s) found out of "
            f"{summary.total_count} worker(s) ({len(summary.solutions)} distinct).",
            file=self.logf,
            flush=True,
        )
        self._notify(self.on_summary, summary.solved_count, summary.total_count)

    def _notify(self, callback: Callable[..., None] | None, *args: object) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            print(f"Error in callback {callback!r}: {str(e)}", file=self.logf, flush=True)
            print(traceback.format_exc(), file=self.logf, flush=True)
