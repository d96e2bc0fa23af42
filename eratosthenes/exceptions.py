"""
Error taxonomy for the sieve engines.

Responsibility: the two failure modes a caller of the engines can observe,
plus the bound check every engine runs before allocating anything.
"""

import operator


class InvalidBoundError(ValueError):
    """Raised when the sieve bound is not greater than 1."""

    def __init__(self, n):
        self.n = n
        super().__init__(f"N must be greater than 1, got {n}")


class TaskFailureError(RuntimeError):
    """
    Raised after the join barrier when a marking task did not complete.

    The exception raised inside the task is chained as ``__cause__``.
    """

    def __init__(self, prime: int, reason: str = ""):
        self.prime = prime
        message = f"Marking task for prime {prime} failed"
        if reason:
            message += f": {reason}"
        super().__init__(message)


def check_bound(n) -> int:
    """
    Validate a sieve bound and return it as a plain int.

    Parameters
    ----------
    n : int
        Upper bound (inclusive). NumPy integers are accepted.

    Returns
    -------
    int
        The bound.

    Raises
    ------
    TypeError
        If n is not an integer (bool included).
    InvalidBoundError
        If n <= 1.
    """
    if isinstance(n, bool):
        raise TypeError("N must be an integer, got bool")
    try:
        n = operator.index(n)
    except TypeError:
        raise TypeError(f"N must be an integer, got {type(n).__name__}") from None
    if n <= 1:
        raise InvalidBoundError(n)
    return n


def check_count(value, name: str) -> int:
    """Validate a positive integer setting such as num_workers; ValueError otherwise."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")
    return value
