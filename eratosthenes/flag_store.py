"""
Composite-marker array shared by sieve workers.

Responsibility: the flag array and its write discipline. No sieve logic.

Index mapping:
- A store covers the closed candidate range [lower, upper]
- Cell i holds candidate lower + i  (candidate - 2 for allocate(n))

Cell values:
- False: not crossed out (prime, once every small prime has marked)
- True:  composite

Cells are one byte each (NumPy bool), so a write to cell i never touches
cell i±1. Writes only ever set True, which makes concurrent writes to the
same cell idempotent. Reads are only valid after every writer has joined.
"""

import threading
from typing import List, Optional

import numpy as np

from .exceptions import check_bound, check_count

LOCK_MODES = ("none", "striped", "global")


class FlagStore:
    """
    Flag array for candidates lower..upper.

    Parameters
    ----------
    lower, upper : int
        Candidate range (inclusive). upper < lower gives an empty store.
    lock_mode : str
        "none" relies on byte-sized cells for independent writes.
        "striped" guards disjoint index ranges with one lock each.
        "global" serialises every write call behind a single lock.
    lock_stripes : int
        Number of disjoint index ranges for "striped".
    buffer : buffer, optional
        Existing zeroed buffer of at least size bytes (e.g. shared memory).
    """

    def __init__(self, lower: int, upper: int, lock_mode: str = "none",
                 lock_stripes: int = 64, buffer=None):
        if lock_mode not in LOCK_MODES:
            raise ValueError(f"Unknown lock mode {lock_mode!r}, expected one of {LOCK_MODES}")
        check_count(lock_stripes, "lock_stripes")

        self._lower = lower
        self._upper = upper
        size = max(0, upper - lower + 1)

        if buffer is None:
            self._cells = np.zeros(size, dtype=bool)
        else:
            self._cells = np.ndarray((size,), dtype=bool, buffer=buffer)

        self._lock_mode = lock_mode
        self._locks: List[threading.Lock] = []
        self._stripe_size = max(size, 1)
        if lock_mode == "global":
            self._locks = [threading.Lock()]
        elif lock_mode == "striped":
            self._stripe_size = max(1, -(-size // lock_stripes))
            n_stripes = max(1, -(-size // self._stripe_size))
            self._locks = [threading.Lock() for _ in range(n_stripes)]

    @classmethod
    def allocate(cls, n: int, lock_mode: str = "none", lock_stripes: int = 64) -> "FlagStore":
        """Store for candidates 2..n (n - 1 cells, all prime)."""
        n = check_bound(n)
        return cls(2, n, lock_mode=lock_mode, lock_stripes=lock_stripes)

    @property
    def lower(self) -> int:
        return self._lower

    @property
    def upper(self) -> int:
        return self._upper

    @property
    def size(self) -> int:
        return len(self._cells)

    @property
    def lock_mode(self) -> str:
        return self._lock_mode

    @property
    def cells(self) -> np.ndarray:
        """Raw cell view. Writers should go through mark/mark_multiples."""
        return self._cells

    def __len__(self) -> int:
        return self.size

    def _index(self, candidate: int) -> int:
        if not self._lower <= candidate <= self._upper:
            raise IndexError(
                f"Candidate {candidate} outside range [{self._lower}, {self._upper}]")
        return candidate - self._lower

    def _lock_for(self, index: int) -> Optional[threading.Lock]:
        if self._lock_mode == "none":
            return None
        if self._lock_mode == "global":
            return self._locks[0]
        return self._locks[index // self._stripe_size]

    def mark(self, candidate: int) -> None:
        """Set the cell for candidate to composite."""
        i = self._index(candidate)
        lock = self._lock_for(i)
        if lock is None:
            self._cells[i] = True
        else:
            with lock:
                self._cells[i] = True

    def mark_multiples(self, p: int, start: int) -> int:
        """
        Mark start, start + p, start + 2p, ... up to upper.

        Parameters
        ----------
        p : int
            Stride (the prime whose multiples are crossed out).
        start : int
            First candidate to mark. Must be >= lower.

        Returns
        -------
        int
            Number of cells written.
        """
        if p < 1:
            raise ValueError(f"Stride must be positive, got {p}")
        if start < self._lower:
            raise ValueError(f"Start {start} below range lower bound {self._lower}")

        first = start - self._lower
        size = self.size
        if first >= size:
            return 0

        if self._lock_mode == "none":
            self._cells[first::p] = True
        elif self._lock_mode == "global":
            with self._locks[0]:
                self._cells[first::p] = True
        else:
            # One stripe at a time; jump straight to the next stripe the stride hits
            stripe = self._stripe_size
            i = first
            while i < size:
                end = min((i // stripe + 1) * stripe, size)
                with self._locks[i // stripe]:
                    self._cells[i:end:p] = True
                i += -(-(end - i) // p) * p

        return (size - first + p - 1) // p

    def is_prime(self, candidate: int) -> bool:
        """True if the cell for candidate has not been marked composite."""
        return not self._cells[self._index(candidate)]

    def unmarked(self) -> np.ndarray:
        """Ascending int64 array of candidates still marked prime."""
        return np.flatnonzero(~self._cells).astype(np.int64) + self._lower
