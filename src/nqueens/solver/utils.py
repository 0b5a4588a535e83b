"""Utility functions for the N-Queens solver."""

import os
import random

import numpy as np

TIMESTAMP_FMT = "%Y-%m-%d %H:%M:%S.%f %Z%z"


def shuffled_columns(n: int, rng: random.Random) -> list[int]:
    """Return the columns `0..n-1` in a random order (Fisher-Yates shuffle)."""
    columns = list(range(n))
    rng.shuffle(columns)
    return columns


def spawn_seeds(base_seed: int, count: int) -> list[int]:
    """Derive `count` independent worker seeds from a single base seed.

    Uses numpy's `SeedSequence.spawn`, so nearby base seeds (e.g. consecutive timestamps)
    still yield unrelated worker seeds.
    """
    children = np.random.SeedSequence(base_seed).spawn(count)
    return [int(child.generate_state(1, dtype=np.uint64)[0]) for child in children]


def default_worker_count(n: int) -> int:
    """Heuristic number of concurrent searches for a board of size `n`.

    Small boards are solved almost instantly, so only a couple of workers are useful;
    larger boards get up to one worker per available CPU.
    """
    cpus = os.cpu_count() or 1  # Fallback to 1 if os.cpu_count() is None
    if n <= 4:
        return min(2, cpus)
    if n <= 8:
        return min(4, cpus)
    return min(cpus, max(4, n // 2))


def complexity_estimate(n: int) -> str:
    """Rough human-readable estimate of how long a visualized search takes."""
    if n <= 4:
        return "Very Easy (< 1 second)"
    if n <= 8:
        return "Easy (1-10 seconds)"
    if n <= 12:
        return "Medium (10 seconds - 2 minutes)"
    if n <= 16:
        return "Hard (2-30 minutes)"
    return "Very Hard (may take hours)"


def time_str(seconds: float) -> str:
    """Convert a time duration in seconds to a human-readable string.

    Args:
        seconds: Time duration in seconds.

    Returns:
        A string formatted as "HH:MM:SS.ss".
    """
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{int(hours):02}:{int(minutes):02}:{secs:05.2f}"
