"""
Two-phase parallel sieve over the high range.

Phase 1 sieves the small primes up to sqrt(N) sequentially. Phase 2 marks
their multiples in the high range (sqrt(N), N] with one task per small prime,
pulled by a fixed-size worker pool, then joins every task before reading.

The process backend keeps the high-range flags in shared memory so workers
write the same array without pickling it. A worker that dies mid-task breaks
the pool, which fails every pending task instead of leaving it unfinished.
"""

import logging
import multiprocessing
import sys
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, wait
from math import isqrt
from multiprocessing import cpu_count, shared_memory, util
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .exceptions import TaskFailureError, check_bound, check_count
from .flag_store import LOCK_MODES, FlagStore
from .primes import sequential_sieve

log = logging.getLogger(__name__)

BACKENDS = ("process", "thread", "serial")

# (prime, error raised by its task or None, cells written)
TaskOutcome = Tuple[int, Optional[Exception], int]

# Global variables for worker processes (set via initializer)
_worker_store = None
_worker_shm = None


def first_multiple(p: int, lower: int) -> int:
    """Smallest multiple of p that is >= lower."""
    return -(-lower // p) * p


def mark_prime_multiples(store: FlagStore, p: int) -> int:
    """Marking task: cross out every multiple of p inside the store's range."""
    return store.mark_multiples(p, first_multiple(p, store.lower))


def _attach_shm(shm_name: str) -> shared_memory.SharedMemory:
    # The creating process owns the segment; workers must not register it again
    if sys.version_info >= (3, 13):
        return shared_memory.SharedMemory(name=shm_name, track=False)
    return shared_memory.SharedMemory(name=shm_name)


def _close_worker_shm():
    """Release the worker's view, then its handle on the shared block."""
    global _worker_store, _worker_shm
    _worker_store = None
    if _worker_shm is not None:
        _worker_shm.close()
        _worker_shm = None


def _init_worker_shm(shm_name: str, lower: int, upper: int):
    """Initialize worker with the shared-memory high-range flags."""
    global _worker_store, _worker_shm
    _worker_shm = _attach_shm(shm_name)
    _worker_store = FlagStore(lower, upper, buffer=_worker_shm.buf)
    util.Finalize(None, _close_worker_shm, exitpriority=10)


def _mark_prime_shm(p: int) -> int:
    return mark_prime_multiples(_worker_store, p)


def _collect(futures) -> List[TaskOutcome]:
    outcomes = []
    for p, f in futures:
        exc = f.exception()
        outcomes.append((p, exc, 0 if exc is not None else f.result()))
    return outcomes


def _run_serial(store: FlagStore, primes: Sequence[int]) -> List[TaskOutcome]:
    outcomes = []
    for p in primes:
        try:
            outcomes.append((p, None, mark_prime_multiples(store, p)))
        except Exception as exc:
            outcomes.append((p, exc, 0))
    return outcomes


def _run_threads(store: FlagStore, primes: Sequence[int],
                 num_workers: int) -> List[TaskOutcome]:
    with ThreadPoolExecutor(max_workers=num_workers) as executor:
        futures = [(p, executor.submit(mark_prime_multiples, store, p)) for p in primes]
        wait([f for _, f in futures])
    return _collect(futures)


def _run_processes(lower: int, upper: int, primes: Sequence[int], num_workers: int,
                   start_method: Optional[str] = None) -> Tuple[List[TaskOutcome], np.ndarray]:
    context = multiprocessing.get_context(start_method)
    shm = shared_memory.SharedMemory(create=True, size=max(1, upper - lower + 1))
    store = None
    try:
        store = FlagStore(lower, upper, buffer=shm.buf)
        store.cells[:] = False

        with ProcessPoolExecutor(max_workers=num_workers, mp_context=context,
                                 initializer=_init_worker_shm,
                                 initargs=(shm.name, lower, upper)) as executor:
            futures = [(p, executor.submit(_mark_prime_shm, p)) for p in primes]
            wait([f for _, f in futures])

        # Copy out before the shared block goes away
        return _collect(futures), store.unmarked()
    finally:
        # Views into shm.buf must be released before close()
        store = None
        shm.close()
        shm.unlink()


def check_start_method(start_method: Optional[str]) -> None:
    """ValueError unless start_method is None or available on this platform."""
    methods = multiprocessing.get_all_start_methods()
    if start_method is not None and start_method not in methods:
        raise ValueError(f"Unknown start method {start_method!r}, expected one of {methods}")


def _raise_first_failure(outcomes: List[TaskOutcome]) -> int:
    """Raise TaskFailureError for the first failed task; else return cells written."""
    for p, exc, _ in outcomes:
        if exc is not None:
            raise TaskFailureError(p, repr(exc)) from exc
    return sum(marked for _, _, marked in outcomes)


def parallel_range_sieve(n: int, num_workers: int = None, backend: str = "process",
                         lock_mode: str = "none", lock_stripes: int = 64,
                         start_method: str = None) -> np.ndarray:
    """
    Return all primes <= n using the two-phase parallel sieve.

    Parameters
    ----------
    n : int
        Upper bound (inclusive), n > 1.
    num_workers : int, optional
        Worker pool size. Defaults to CPU count.
    backend : str
        "process" (shared memory + ProcessPoolExecutor), "thread"
        (ThreadPoolExecutor) or "serial" (tasks run inline).
    lock_mode : str
        FlagStore lock mode. Only "none" is valid for the process backend.
    lock_stripes : int
        Stripe count for lock_mode="striped".
    start_method : str, optional
        multiprocessing start method for the process backend
        ("fork", "spawn", "forkserver"). Defaults to the platform default.

    Returns
    -------
    np.ndarray
        Ascending int64 array of primes.

    Raises
    ------
    InvalidBoundError
        If n <= 1, before any allocation or task launch.
    TaskFailureError
        If a marking task failed, including a worker process that died.
        Raised after every task has been joined.
    """
    n = check_bound(n)
    if backend not in BACKENDS:
        raise ValueError(f"Unknown backend {backend!r}, expected one of {BACKENDS}")
    if lock_mode not in LOCK_MODES:
        raise ValueError(f"Unknown lock mode {lock_mode!r}, expected one of {LOCK_MODES}")
    if backend == "process" and lock_mode != "none":
        raise ValueError(f"lock_mode {lock_mode!r} needs the thread backend; "
                         "process workers share flags without locks")
    check_start_method(start_method)
    if num_workers is None:
        num_workers = cpu_count()
    check_count(num_workers, "num_workers")

    # Phase 1: small primes up to sqrt(n)
    root = isqrt(n)
    if root >= 2:
        small_primes = sequential_sieve(root)
    else:
        small_primes = np.array([], dtype=np.int64)
    log.debug("Found %d small primes up to %d", len(small_primes), root)

    # Phase 2: one marking task per small prime over [root + 1, n]
    lower, upper = root + 1, n
    primes = [int(p) for p in small_primes]

    if backend == "process" and primes:
        log.debug("Marking [%d, %d] with %d process workers", lower, upper, num_workers)
        outcomes, high = _run_processes(lower, upper, primes, num_workers, start_method)
    else:
        store = FlagStore(lower, upper, lock_mode=lock_mode, lock_stripes=lock_stripes)
        if backend == "thread" and primes:
            log.debug("Marking [%d, %d] with %d thread workers (lock_mode=%s)",
                      lower, upper, num_workers, lock_mode)
            outcomes = _run_threads(store, primes, num_workers)
        else:
            outcomes = _run_serial(store, primes)
        high = None

    # Every task has been joined at this point
    marked = _raise_first_failure(outcomes)
    if high is None:
        high = store.unmarked()
    log.debug("%d tasks wrote %d cells, %d primes in high range",
              len(outcomes), marked, len(high))

    return np.concatenate([small_primes, high])


if __name__ == '__main__':
    import time

    logging.basicConfig(level=logging.INFO, format='%(levelname)s - %(message)s')

    configs = [
        ("process", "none"),
        ("thread", "none"),
        ("thread", "striped"),
        ("thread", "global"),
    ]

    # Benchmark
    for N in [10**6, 10**7, 10**8]:
        print(f"\nN = {N:,}")

        t0 = time.time()
        seq = sequential_sieve(N)
        t_seq = time.time() - t0
        print(f"  Sequential: {t_seq:.2f}s ({len(seq):,} primes)")

        for backend, lock_mode in configs:
            t0 = time.time()
            par = parallel_range_sieve(N, backend=backend, lock_mode=lock_mode)
            t_par = time.time() - t0
            print(f"  Parallel [{backend}, lock={lock_mode}]: {t_par:.2f}s "
                  f"(speedup {t_seq / t_par:.1f}x)")

            # Verify
            assert np.array_equal(par, seq), "Results don't match!"
        print("  Verified")
