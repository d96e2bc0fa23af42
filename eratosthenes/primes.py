"""
Sequential sieve of Eratosthenes.

Responsibility: the single-threaded baseline. It is the reference result for
every strategy and the small-prime seed for the parallel engine.
"""

from math import isqrt

import numpy as np

from .exceptions import check_bound
from .flag_store import FlagStore


def sequential_sieve(n: int) -> np.ndarray:
    """
    Return all primes <= n using the classic sieve.

    Parameters
    ----------
    n : int
        Upper bound (inclusive), n > 1.

    Returns
    -------
    np.ndarray
        Ascending int64 array of primes.

    Raises
    ------
    InvalidBoundError
        If n <= 1. Raised before the flag array is allocated.
    """
    n = check_bound(n)
    store = FlagStore.allocate(n)
    for i in range(2, isqrt(n) + 1):
        if store.is_prime(i):
            # Smaller multiples were already crossed out by smaller primes
            store.mark_multiples(i, i * i)
    return store.unmarked()
