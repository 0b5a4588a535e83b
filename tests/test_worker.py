import threading

import pytest

from nqueens.board import EMPTY, InvalidArgumentError, is_valid_solution
from nqueens.solver.events import Outcome, OutcomeEvent, SnapshotEvent
from nqueens.solver.worker import SearchWorker, worker_task


def is_safe_partial(queens):
    """Filled rows form a prefix and no two placed queens attack each other."""
    filled = [col for col in queens if col != EMPTY]
    if list(queens[: len(filled)]) != filled:
        return False
    return all(
        filled[i] != filled[j] and abs(filled[i] - filled[j]) != abs(i - j)
        for i in range(len(filled))
        for j in range(i + 1, len(filled))
    )


def test_worker_solves_and_reports():
    events = []
    worker = SearchWorker(1, 8, seed=42, emit=events.append)
    result = worker.run()

    assert result.outcome is Outcome.SOLVED
    assert worker.outcome is Outcome.SOLVED
    assert is_valid_solution(result.queens)

    snapshots = [e for e in events if isinstance(e, SnapshotEvent)]
    outcomes = [e for e in events if isinstance(e, OutcomeEvent)]
    assert len(outcomes) == 1
    assert events[-1] is outcomes[0]
    assert outcomes[0].queens == result.queens
    # One snapshot per placement, the last one is the solution
    assert len(snapshots) == result.placements
    assert snapshots[-1].queens == result.queens
    assert all(isinstance(e.queens, tuple) and is_safe_partial(e.queens) for e in snapshots)
    assert {e.worker_id for e in events} == {1}


@pytest.mark.parametrize("n", [2, 3])
def test_worker_exhausts_unsolvable_boards(n):
    events = []
    result = SearchWorker(3, n, seed=1, emit=events.append).run()
    assert result.outcome is Outcome.EXHAUSTED
    assert result.queens == (EMPTY,) * n
    assert isinstance(events[-1], OutcomeEvent)
    assert events[-1].outcome is Outcome.EXHAUSTED


def test_worker_single_queen():
    result = SearchWorker(1, 1, seed=0).run()
    assert result.outcome is Outcome.SOLVED
    assert result.queens == (0,)
    assert result.placements == 1


def test_worker_same_seed_same_events():
    first, second = [], []
    SearchWorker(1, 6, seed=5, emit=first.append).run()
    SearchWorker(1, 6, seed=5, emit=second.append).run()
    assert first == second


def test_stop_before_run_cancels():
    events = []
    worker = SearchWorker(2, 8, seed=42, emit=events.append)
    worker.request_stop()
    worker.request_stop()  # idempotent
    assert worker.stop_requested

    result = worker.run()
    assert result.outcome is Outcome.CANCELLED
    assert result.placements == 0
    assert events == [
        OutcomeEvent(worker_id=2, outcome=Outcome.CANCELLED, queens=(EMPTY,) * 8, placements=0)
    ]


def test_stop_during_search_cancels():
    worker = None

    def emit(event):
        if isinstance(event, SnapshotEvent) and sum(c != EMPTY for c in event.queens) == 3:
            worker.request_stop()

    worker = SearchWorker(1, 12, seed=3, emit=emit)
    result = worker.run()
    assert result.outcome is Outcome.CANCELLED
    # The stop is observed before the next column trial, so no more than one extra placement
    assert result.placements <= 4


def test_solved_wins_over_late_stop():
    worker = None

    def emit(event):
        if isinstance(event, SnapshotEvent) and EMPTY not in event.queens:
            worker.request_stop()

    worker = SearchWorker(1, 6, seed=11, emit=emit)
    result = worker.run()
    assert result.outcome is Outcome.SOLVED
    assert worker.stop_requested


def test_step_delay_is_interruptible():
    first_placement = threading.Event()
    results = []

    def emit(event):
        if isinstance(event, SnapshotEvent):
            first_placement.set()

    worker = SearchWorker(1, 8, seed=42, emit=emit, step_delay=30.0)
    thread = threading.Thread(target=lambda: results.append(worker.run()))
    thread.start()

    assert first_placement.wait(timeout=5)
    worker.request_stop()
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert results[0].outcome is Outcome.CANCELLED
    assert results[0].placements == 1


def test_stop_during_final_pause_cancels():
    board_full = threading.Event()
    results = []

    def emit(event):
        if isinstance(event, SnapshotEvent) and EMPTY not in event.queens:
            board_full.set()

    worker = SearchWorker(1, 1, seed=0, emit=emit, step_delay=5.0)
    thread = threading.Thread(target=lambda: results.append(worker.run()))
    thread.start()

    assert board_full.wait(timeout=5)
    worker.request_stop()
    thread.join(timeout=2)

    assert not thread.is_alive()
    # The stop woke the pause before the search reached the end of the board
    assert results[0].outcome is Outcome.CANCELLED
    assert results[0].placements == 1
    assert results[0].elapsed < 2.0


def test_external_stop_flag_is_used():
    flag = threading.Event()
    flag.set()
    result = SearchWorker(1, 8, seed=42, stop_flag=flag).run()
    assert result.outcome is Outcome.CANCELLED


def test_internal_error_reported_as_failed():
    events = []

    def emit(event):
        if isinstance(event, SnapshotEvent):
            raise RuntimeError("sink exploded")
        events.append(event)

    result = SearchWorker(4, 8, seed=42, emit=emit).run()
    assert result.outcome is Outcome.FAILED
    assert "sink exploded" in result.err_msg
    assert len(events) == 1
    assert events[0].outcome is Outcome.FAILED
    assert "RuntimeError" in events[0].err_msg


def test_invalid_board_size():
    with pytest.raises(InvalidArgumentError):
        SearchWorker(1, 0)


def test_worker_task_requires_initialized_globals():
    with pytest.raises(RuntimeError):
        worker_task(1, 8, 42)
