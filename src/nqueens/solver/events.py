"""Events exchanged between workers and the orchestrator."""

from dataclasses import dataclass
from enum import StrEnum


class Outcome(StrEnum):
    """Terminal classification of a worker's run."""

    SOLVED = "solved"
    """A complete safe placement was found."""

    EXHAUSTED = "exhausted"
    """The whole search tree was explored without finding a solution."""

    CANCELLED = "cancelled"
    """A stop was requested before the search completed."""

    FAILED = "failed"
    """The worker hit an unexpected error."""


@dataclass(frozen=True)
class SnapshotEvent:
    """Board state published by a worker after each placement.

    Pickleable, so that it can be sent through a `multiprocessing` queue.
    """

    worker_id: int
    queens: tuple[int, ...]
    """Copy of the placement array (-1 for empty rows)."""


@dataclass(frozen=True)
class OutcomeEvent:
    """Terminal event published once by every worker."""

    worker_id: int
    outcome: Outcome
    queens: tuple[int, ...]
    """Final placement array; a complete solution if `outcome` is `SOLVED`."""
    placements: int = 0
    """Number of queens placed during the search."""
    err_msg: str | None = None


Event = SnapshotEvent | OutcomeEvent
