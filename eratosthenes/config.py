"""
Engine configuration.

Settings live in a YAML file (config/default.yaml ships the defaults) and are
loaded into a SieveConfig. Missing keys keep their defaults.
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Union

import yaml

from .exceptions import check_count
from .flag_store import LOCK_MODES
from .parallel_sieve import BACKENDS, check_start_method

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "default.yaml"


@dataclass(frozen=True)
class SieveConfig:
    """Settings for primes_up_to and the parallel engine."""

    strategy: str = "sequential"
    num_workers: Optional[int] = None
    backend: str = "process"
    lock_mode: str = "none"
    lock_stripes: int = 64
    start_method: Optional[str] = None

    def __post_init__(self):
        # Imported here: strategies depends on this module
        from .strategies import Strategy

        Strategy.parse(self.strategy)
        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown backend {self.backend!r}, expected one of {BACKENDS}")
        if self.lock_mode not in LOCK_MODES:
            raise ValueError(f"Unknown lock mode {self.lock_mode!r}, expected one of {LOCK_MODES}")
        if self.backend == "process" and self.lock_mode != "none":
            raise ValueError(f"lock_mode {self.lock_mode!r} needs the thread backend")
        if self.num_workers is not None:
            check_count(self.num_workers, "num_workers")
        check_count(self.lock_stripes, "lock_stripes")
        check_start_method(self.start_method)


def load_config(path: Union[str, Path, None] = None) -> SieveConfig:
    """
    Load a SieveConfig from a YAML file.

    Parameters
    ----------
    path : str or Path, optional
        YAML file. None returns the built-in defaults.

    Returns
    -------
    SieveConfig

    Raises
    ------
    ValueError
        If the document is not a mapping, has unknown keys or invalid values.
    """
    if path is None:
        return SieveConfig()

    with open(path) as f:
        data = yaml.safe_load(f)

    if data is None:
        return SieveConfig()
    if not isinstance(data, dict):
        raise ValueError(f"Config {path} must be a mapping, got {type(data).__name__}")

    known = {f.name for f in fields(SieveConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown config keys in {path}: {', '.join(map(str, unknown))}")

    return SieveConfig(**data)
