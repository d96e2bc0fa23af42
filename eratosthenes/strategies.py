"""
Strategy dispatch for prime enumeration.

Responsibility: one entry point, primes_up_to(n, strategy), over exactly two
engines. Strategy choice changes performance only, never the result.

Routing:
- sequential, modified-sequential, data-decomposition  -> sequential sieve
- parallel-by-range, basic-primes-decomposition, thread-pool -> parallel range sieve

modified-sequential, data-decomposition, basic-primes-decomposition and
thread-pool are aliases until they get engines of their own.
"""

from enum import Enum
from typing import List, Union

import numpy as np

from .config import SieveConfig
from .exceptions import check_bound
from .parallel_sieve import parallel_range_sieve
from .primes import sequential_sieve


class Strategy(str, Enum):
    SEQUENTIAL = "sequential"
    MODIFIED_SEQUENTIAL = "modified-sequential"
    PARALLEL_RANGE = "parallel-by-range"
    DATA_DECOMPOSITION = "data-decomposition"
    BASIC_PRIMES_DECOMPOSITION = "basic-primes-decomposition"
    THREAD_POOL = "thread-pool"

    @classmethod
    def parse(cls, value: Union["Strategy", str]) -> "Strategy":
        """Strategy from an enum member or its name, e.g. "parallel-by-range"."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValueError(
                f"Unknown strategy {value!r}, expected one of {available_strategies()}"
            ) from None


class Engine(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL_RANGE = "parallel-by-range"


_ENGINES = {
    Strategy.SEQUENTIAL: Engine.SEQUENTIAL,
    Strategy.MODIFIED_SEQUENTIAL: Engine.SEQUENTIAL,
    Strategy.DATA_DECOMPOSITION: Engine.SEQUENTIAL,
    Strategy.PARALLEL_RANGE: Engine.PARALLEL_RANGE,
    Strategy.BASIC_PRIMES_DECOMPOSITION: Engine.PARALLEL_RANGE,
    Strategy.THREAD_POOL: Engine.PARALLEL_RANGE,
}


def available_strategies() -> List[str]:
    """Strategy names in declaration order."""
    return [s.value for s in Strategy]


def engine_for(strategy: Union[Strategy, str]) -> Engine:
    """Engine a strategy is routed to."""
    return _ENGINES[Strategy.parse(strategy)]


def primes_up_to(n: int, strategy: Union[Strategy, str, None] = None,
                 config: SieveConfig = None) -> np.ndarray:
    """
    Return every prime in [2, n], ascending.

    Parameters
    ----------
    n : int
        Upper bound (inclusive), n > 1.
    strategy : Strategy or str, optional
        Strategy name. Defaults to config.strategy.
    config : SieveConfig, optional
        Engine settings. Defaults to SieveConfig().

    Returns
    -------
    np.ndarray
        Ascending int64 array of primes, identical for every strategy.

    Raises
    ------
    InvalidBoundError
        If n <= 1.
    TaskFailureError
        If a parallel marking task failed.
    """
    if config is None:
        config = SieveConfig()
    strategy = Strategy.parse(config.strategy if strategy is None else strategy)
    n = check_bound(n)

    if _ENGINES[strategy] is Engine.SEQUENTIAL:
        return sequential_sieve(n)
    return parallel_range_sieve(
        n,
        num_workers=config.num_workers,
        backend=config.backend,
        lock_mode=config.lock_mode,
        lock_stripes=config.lock_stripes,
        start_method=config.start_method,
    )
