"""Main module for worker tasks in the parallel solver."""

import random
import threading
import traceback
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from multiprocessing.queues import Queue
from multiprocessing.sharedctypes import Synchronized
from time import time
from typing import Protocol

from nqueens.solver.events import Event, Outcome, OutcomeEvent, SnapshotEvent
from nqueens.solver.solver import Solver


class StopFlag(Protocol):
    """Cancellation flag: `threading.Event` and `multiprocessing` events both qualify."""

    def is_set(self) -> bool: ...

    def set(self) -> None: ...

    def wait(self, timeout: float | None = None) -> bool: ...


@dataclass(kw_only=True)
class WorkerState:
    """Global state maintained by each worker process."""

    process_idx: int
    """Index of the worker process (not the worker id: a process may run several tasks)."""

    events: Queue
    """Queue shared with the orchestrator, receives `SnapshotEvent`s and `OutcomeEvent`s."""

    stop_events: Sequence[StopFlag]
    """Per-worker cancellation flags, indexed by `worker_id - 1`."""

    step_delay: float
    """Seconds to pause after each placement."""


worker_state: WorkerState | None = None
"""Global state for each worker process."""


def init_worker_globals(
    process_ctr: "Synchronized[int]",
    events: Queue,
    stop_events: Sequence[StopFlag],
    step_delay: float,
) -> None:
    """Initialize global variables for worker processes.

    Args:
        process_ctr (Synchronized[int]): Shared counter for worker processes.
        events (Queue): Queue to publish events on.
        stop_events (Sequence[StopFlag]): Cancellation flags, one per worker.
        step_delay (float): Seconds to pause after each placement.
    """
    global worker_state  # noqa: PLW0603
    with process_ctr.get_lock():
        # Get and set the shared counter atomically, using the obtained value
        # as the process index
        process_idx = process_ctr.value
        process_ctr.value += 1

    worker_state = WorkerState(
        process_idx=process_idx,
        events=events,
        stop_events=stop_events,
        step_delay=step_delay,
    )
    print(f"Process {process_idx} initialized.", flush=True)


class SearchCancelled(Exception):
    """Raised inside the search to unwind the recursion after a stop request."""

    pass


@dataclass
class Result:
    """Wrapper for worker task results."""

    worker_id: int
    outcome: Outcome
    queens: tuple[int, ...]
    placements: int = 0
    elapsed: float = 0.0
    err_msg: str | None = None


class SearchWorker:
    """One randomized backtracking search, instrumented for progress reporting and
    cooperative cancellation.

    The worker publishes a `SnapshotEvent` after every placement and exactly one
    `OutcomeEvent` when `run` ends.  A stop request is honoured before each column trial;
    the pause after a placement wakes up as soon as a stop is requested.
    """

    def __init__(
        self,
        worker_id: int,
        n: int,
        *,
        seed: int | None = None,
        rng: random.Random | None = None,
        stop_flag: StopFlag | None = None,
        emit: Callable[[Event], None] | None = None,
        step_delay: float = 0.0,
    ) -> None:
        """Initialize the worker.

        Args:
            worker_id (int): Identifier reported with every event.
            n (int): Board size.
            seed (int | None): Seed for the column-order random source (ignored if `rng`
                is given).
            rng (random.Random | None): Random source to use instead of seeding a new one.
            stop_flag (StopFlag | None): Cancellation flag.  A private `threading.Event` if
                None.
            emit (Callable[[Event], None] | None): Event sink.  Events are dropped if None.
            step_delay (float): Seconds to pause after each placement.

        Raises:
            InvalidArgumentError: If `n` is not a positive integer.
        """
        self.worker_id = worker_id
        self.solver = Solver(n, rng if rng is not None else random.Random(seed))
        self.stop_flag: StopFlag = stop_flag if stop_flag is not None else threading.Event()
        self.emit = emit
        self.step_delay = step_delay

        self.outcome: Outcome | None = None
        """Terminal outcome, None until `run` returns."""

        self.placements = 0
        """Number of queens placed so far."""

    def request_stop(self) -> None:
        """Ask the worker to stop.  Idempotent and non-blocking."""
        self.stop_flag.set()

    @property
    def stop_requested(self) -> bool:
        return self.stop_flag.is_set()

    def run(self) -> Result:
        """Run the search to completion, cancellation or failure.

        Returns:
            A Result wrapper; the same outcome is published as an `OutcomeEvent`.
        """
        start_time = time()
        print(f"Worker {self.worker_id} started.", flush=True)

        err_msg: str | None = None
        try:
            outcome = Outcome.SOLVED if self._search(0) else Outcome.EXHAUSTED
        except SearchCancelled:
            outcome = Outcome.CANCELLED
        except Exception as e:
            outcome = Outcome.FAILED
            err_msg = f"Worker encountered an error: {str(e)}\n{traceback.format_exc()}"

        self.outcome = outcome
        queens = self.solver.snapshot()
        print(f"Worker {self.worker_id} finished: {outcome}.", flush=True)
        self._publish(
            OutcomeEvent(
                worker_id=self.worker_id,
                outcome=outcome,
                queens=queens,
                placements=self.placements,
                err_msg=err_msg,
            )
        )
        return Result(
            worker_id=self.worker_id,
            outcome=outcome,
            queens=queens,
            placements=self.placements,
            elapsed=time() - start_time,
            err_msg=err_msg,
        )

    def _search(self, row: int) -> bool:
        """Instrumented version of `Solver.solve`.

        Args:
            row (int): Row to fill next.

        Returns:
            True once all rows are filled, False if no placement of this row leads to a
            solution (the caller backtracks).

        Raises:
            SearchCancelled: If a stop was requested.
        """
        board = self.solver.board
        if row == board.n:
            return True

        for col in self.solver.column_order():
            if self.stop_flag.is_set():
                raise SearchCancelled
            if board.is_safe(row, col):
                board.place_queen(row, col)
                self.placements += 1
                self._publish(SnapshotEvent(worker_id=self.worker_id, queens=board.snapshot()))
                self._pause()

                if self._search(row + 1):
                    return True

                board.remove_queen(row)

        return False

    def _pause(self) -> None:
        # Also a check point: a stop that wakes the pause cancels, even after the last row
        if self.step_delay > 0 and self.stop_flag.wait(self.step_delay):
            raise SearchCancelled

    def _publish(self, event: Event) -> None:
        if self.emit is not None:
            self.emit(event)


def worker_task(worker_id: int, n: int, seed: int) -> Result:
    """Worker task run in a pool process.

    Args:
        worker_id (int): 1-based worker id, selects the stop event in the worker globals.
        n (int): Board size.
        seed (int): Seed for the worker's column orders.

    Returns:
        A Result wrapper.
    """
    # Ensure worker_state is initialized
    if not worker_state:
        raise RuntimeError("Worker state not initialized. Call init_worker_globals first.")

    print(f"Worker {worker_id} assigned to process {worker_state.process_idx}.", flush=True)
    worker = SearchWorker(
        worker_id,
        n,
        seed=seed,
        stop_flag=worker_state.stop_events[worker_id - 1],
        emit=worker_state.events.put,
        step_delay=worker_state.step_delay,
    )
    return worker.run()
