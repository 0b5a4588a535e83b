"""N-Queens solver configuration."""

from dotenv import find_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Determine the environment file path, or None if not found
ENV_FILE = find_dotenv(usecwd=True) or None


class SolverConfig(BaseSettings):
    """Configuration settings for the N-Queens solver.

    Values can be overridden with environment variables (or a `.env` file) prefixed by
    `NQUEENS_`, e.g. `NQUEENS_STEP_DELAY=0.1`.
    """

    board_size: int = Field(default=8, gt=0)
    """Board size used by the command line when none is given. Default: 8."""

    worker_count: int | None = Field(default=None, ge=1)
    """Number of concurrent searches. If None (default), derived from the board size and
    `os.cpu_count()`, see `default_worker_count`."""

    max_pool_size: int | None = Field(default=None, ge=1)
    """Maximum number of worker processes. If None (default), one process per worker."""

    step_delay: float = Field(default=0.5, ge=0)
    """Seconds each worker pauses after a placement, so intermediate boards can be
    observed. Default: 0.5."""

    stop_grace_period: float = Field(default=2.0, ge=0)
    """Seconds `stop()` waits for workers to finish before terminating them. Default: 2.0."""

    seed: int | None = None
    """Base random seed. If None (default), a time-based seed is used for every run."""

    large_board_warning: int = 20
    """Board sizes above this value print a warning on the command line. Default: 20."""

    show_progress_threshold: float = 0.5
    """Fraction of rows filled at which the command line starts printing boards.
    Default: 0.5."""

    model_config = SettingsConfigDict(
        env_prefix="NQUEENS_",
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        extra="forbid",
    )


config = SolverConfig()
