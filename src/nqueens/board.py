"""Classes and functions for representing the N-Queens board."""

from array import array

import numpy as np

EMPTY = -1
"""Column value of a row without a queen."""


class InvalidArgumentError(ValueError):
    """Exception raised for invalid board sizes, worker counts or board positions."""

    pass


def check_size(n: int, *, what: str = "Board size") -> int:
    """Validate a positive integer argument and return it."""
    if isinstance(n, bool) or not isinstance(n, int):
        raise InvalidArgumentError(f"{what} must be an integer, got {n!r}")
    if n <= 0:
        raise InvalidArgumentError(f"{what} must be positive, got {n}")
    return n


class Board:
    """Store the queen placement of an N-Queens board as a 1D array.

    Entry `i` holds the column of the queen in row `i`, or `EMPTY` (-1) if row `i`
    has no queen yet.  There is at most one queen per row by construction.
    """

    def __init__(self, n: int) -> None:
        self.n = check_size(n)
        self.queens = array("i", [EMPTY] * self.n)

    def __len__(self) -> int:
        return self.n

    def __getitem__(self, row: int) -> int:
        """Get the queen column in a row (-1 if the row is empty)."""
        return self.queens[row]

    def __str__(self) -> str:
        """Returns a text rendering of the board, one line per row."""
        return "\n".join(
            " ".join("Q" if col == self[row] else "." for col in range(self.n))
            for row in range(self.n)
        )

    def print(self, two_d: bool = True) -> None:
        """Print the board to the console."""
        if two_d:
            print(self)
        else:
            print(list(self.queens))

    def _check_index(self, value: int, what: str) -> None:
        if not 0 <= value < self.n:
            raise InvalidArgumentError(f"Invalid {what}: {value} (board size {self.n})")

    def is_safe(self, row: int, col: int) -> bool:
        """Return whether a queen at (row, col) is attacked by a queen in rows 0..row-1.

        Only columns and diagonals are checked; rows are unique by construction.
        """
        queens = self.queens
        for i in range(row):
            placed = queens[i]
            if placed == col or abs(placed - col) == abs(i - row):
                return False
        return True

    def place_queen(self, row: int, col: int) -> None:
        """Place the queen of `row` in column `col`, replacing any queen already in that row."""
        self._check_index(row, "row")
        self._check_index(col, "column")
        self.queens[row] = col

    def remove_queen(self, row: int) -> None:
        """Remove the queen of `row`, if any."""
        self._check_index(row, "row")
        self.queens[row] = EMPTY

    def reset(self) -> None:
        """Remove all queens from the board."""
        for row in range(self.n):
            self.queens[row] = EMPTY

    def snapshot(self) -> tuple[int, ...]:
        """Return an immutable copy of the placement array."""
        return tuple(self.queens)

    @property
    def filled_rows(self) -> int:
        """Number of rows holding a queen."""
        return sum(1 for col in self.queens if col != EMPTY)

    def to_grid(self) -> np.ndarray:
        """Return the board as an `n x n` matrix with 1 where a queen stands, else 0."""
        grid = np.zeros((self.n, self.n), dtype=np.int8)
        for row, col in enumerate(self.queens):
            if col != EMPTY:
                grid[row, col] = 1
        return grid

    def is_solution(self) -> bool:
        """Return whether every row holds a queen and no two queens attack each other."""
        return is_valid_solution(self.queens)


def is_valid_solution(queens: "array[int] | tuple[int, ...] | list[int]") -> bool:
    """Check that a placement array is a complete, mutually safe N-Queens solution."""
    n = len(queens)
    if n == 0 or any(not 0 <= col < n for col in queens):
        return False
    for i in range(n):
        for j in range(i + 1, n):
            if queens[i] == queens[j] or abs(queens[i] - queens[j]) == abs(i - j):
                return False
    return True
