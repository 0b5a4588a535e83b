"""Validated arguments of one solver run."""

from datetime import datetime
from time import time, time_ns

from nqueens.board import InvalidArgumentError, check_size
from nqueens.solver.config import SolverConfig
from nqueens.solver.utils import TIMESTAMP_FMT, default_worker_count, spawn_seeds


class RunArgs:
    """Arguments shared by all workers of one run.

    Built (and validated) in the host process before any worker is spawned.
    """

    def __init__(
        self,
        *,
        n: int,
        worker_count: int | None,
        step_delay: float | None,
        config: SolverConfig,
    ) -> None:
        """Validate the run arguments, filling omitted ones from the configuration.

        Args:
            n (int): Board size.
            worker_count (int | None): Number of workers.  If None, uses `config.worker_count`,
                or `default_worker_count(n)` if that is None too.
            step_delay (float | None): Seconds paused after each placement.  If None, uses
                `config.step_delay`.
            config (SolverConfig): Solver configuration.

        Raises:
            InvalidArgumentError: For a non-positive board size or worker count, or a negative
                step delay.
        """
        self.n = check_size(n)
        """Board size."""

        if worker_count is None:
            worker_count = config.worker_count or default_worker_count(self.n)
        self.worker_count = check_size(worker_count, what="Worker count")
        """Number of concurrent searches."""

        if step_delay is None:
            step_delay = config.step_delay
        if step_delay < 0:
            raise InvalidArgumentError(f"Step delay must not be negative, got {step_delay}")
        self.step_delay = float(step_delay)
        """Seconds each worker pauses after a placement."""

        self.pool_size = min(self.worker_count, config.max_pool_size or self.worker_count)
        """Number of worker processes."""

        self.base_seed = config.seed if config.seed is not None else time_ns()
        """Seed from which the per-worker seeds are derived."""

        self.seeds = spawn_seeds(self.base_seed, self.worker_count)
        """One independent seed per worker, indexed by `worker_id - 1`."""

        self.start_time = time()
        """Timestamp when the run started, in seconds since the epoch."""

    @property
    def worker_ids(self) -> range:
        """Worker ids are 1-based."""
        return range(1, self.worker_count + 1)

    def summary(self) -> dict[str, object]:
        """Return a dictionary-based summary of the run arguments."""
        return {
            "n": self.n,
            "worker_count": self.worker_count,
            "pool_size": self.pool_size,
            "step_delay": self.step_delay,
            "base_seed": self.base_seed,
            "start_time": datetime.fromtimestamp(self.start_time)
            .astimezone()
            .strftime(TIMESTAMP_FMT),
        }
