"""Allow running the solver with `python -m nqueens`."""

from nqueens import main

if __name__ == "__main__":
    main()
