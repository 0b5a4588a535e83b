"""Single-board randomized backtracking solver."""

import random

from nqueens.board import Board
from nqueens.solver.utils import shuffled_columns


class Solver:
    """Randomized backtracking search over one `Board`.

    The random source only decides the order in which columns are tried; which solution
    is found (and how fast) depends on it, correctness does not.
    """

    def __init__(self, n: int, rng: random.Random | None = None) -> None:
        """Initialize the solver with an empty board.

        Args:
            n (int): Board size, must be positive.
            rng (random.Random | None): Source of randomness for column orders.  If None, a
                fresh unseeded `random.Random` is used.

        Raises:
            InvalidArgumentError: If `n` is not a positive integer.
        """
        self.board = Board(n)
        """The board being solved.  Owned exclusively by this solver."""

        self.rng = rng if rng is not None else random.Random()
        """Source of randomness used to order column trials."""

    @property
    def size(self) -> int:
        return self.board.n

    def column_order(self) -> list[int]:
        """Return a freshly shuffled column order.

        Called once per recursive call, so a row revisited while backtracking is tried in a
        new order.
        """
        return shuffled_columns(self.board.n, self.rng)

    def solve(self) -> bool:
        """Search for a complete placement starting from row 0.

        Returns:
            True if a solution was found (it is left on the board), else False (the board is
            left empty).
        """
        return self._solve_row(0)

    def _solve_row(self, row: int) -> bool:
        if row == self.board.n:
            return True

        for col in self.column_order():
            if self.board.is_safe(row, col):
                self.board.place_queen(row, col)
                if self._solve_row(row + 1):
                    return True
                self.board.remove_queen(row)

        return False

    def is_safe(self, row: int, col: int) -> bool:
        """See `Board.is_safe`."""
        return self.board.is_safe(row, col)

    def place_queen(self, row: int, col: int) -> None:
        """See `Board.place_queen`."""
        self.board.place_queen(row, col)

    def remove_queen(self, row: int) -> None:
        """See `Board.remove_queen`."""
        self.board.remove_queen(row)

    def reset(self) -> None:
        self.board.reset()

    def snapshot(self) -> tuple[int, ...]:
        """Return an independent copy of the current placement array."""
        return self.board.snapshot()

    def get_queens(self) -> list[int]:
        """Return the current placement array as a new list."""
        return list(self.board.queens)
