"""N-Queens Concurrent Solver.

Runs several randomized backtracking searches for an N-Queens placement in parallel worker
processes.  Every worker reports the board after each placement and can be stopped
cooperatively; the run ends with a summary of how many workers found a solution.
"""

from sys import argv, exit

from .board import Board, InvalidArgumentError
from .solver.config import config as solver_config
from .solver.events import Outcome
from .solver.parallel import ParallelSolver, RunSummary
from .solver.utils import complexity_estimate

USAGE = "Usage: python -m nqueens [board_size] [worker_count]"


class TerminalSink:
    """Print worker progress and outcomes to the console."""

    def __init__(self, n: int, threshold: float) -> None:
        self.n = n
        self.threshold = threshold
        self.solutions: dict[int, tuple[int, ...]] = {}
        self.latest: dict[int, tuple[int, ...]] = {}

    def reset(self) -> None:
        self.solutions.clear()
        self.latest.clear()

    def on_snapshot(self, worker_id: int, queens: tuple[int, ...]) -> None:
        self.latest[worker_id] = queens
        filled = sum(1 for col in queens if col >= 0)
        if filled / self.n >= self.threshold:
            print(f"Worker {worker_id}: {list(queens)} ({filled}/{self.n})", flush=True)

    def on_outcome(self, worker_id: int, outcome: Outcome) -> None:
        print(f"Worker {worker_id} has finished its task: {outcome}.", flush=True)
        if outcome is Outcome.SOLVED and worker_id in self.latest:
            self.solutions[worker_id] = self.latest[worker_id]

    def on_summary(self, solved_count: int, total_count: int) -> None:
        print(
            f"Completed. {solved_count} solution(s) found out of {total_count} workers.",
            flush=True,
        )


def _parse_args(args: list[str]) -> tuple[int, int | None]:
    if len(args) > 2:
        raise ValueError("too many arguments")
    n = int(args[0]) if args else solver_config.board_size
    worker_count = int(args[1]) if len(args) > 1 else None
    return n, worker_count


def main() -> None:
    """Main entry point for the N-Queens solver."""
    try:
        n, worker_count = _parse_args(argv[1:])
    except ValueError:
        print(USAGE)
        exit(1)

    if n > solver_config.large_board_warning:
        print(
            f"Warning: large board sizes (>{solver_config.large_board_warning}) "
            "may take very long to solve."
        )
    print(f"Complexity estimate for N={n}: {complexity_estimate(n)}")

    sink = TerminalSink(n, solver_config.show_progress_threshold)
    solver = ParallelSolver(
        on_snapshot=sink.on_snapshot,
        on_outcome=sink.on_outcome,
        on_summary=sink.on_summary,
        on_reset=sink.reset,
    )
    try:
        solver.start(n, worker_count)
        summary = solver.wait()
    except InvalidArgumentError as e:
        print(f"Invalid input: {e}")
        print(USAGE)
        exit(1)
    except KeyboardInterrupt:
        print("Solver interrupted by user.")
        solver.stop()
        exit(1)
    solver.stop()

    if summary is not None:
        for worker_id, queens in sorted(sink.solutions.items()):
            print()
            print(f"Worker {worker_id} solution:")
            board = Board(n)
            for row, col in enumerate(queens):
                board.place_queen(row, col)
            board.print()


__all__ = [
    "Board",
    "InvalidArgumentError",
    "Outcome",
    "ParallelSolver",
    "RunSummary",
    "main",
]
