"""Configuration for NMF runs, from YAML files or dicts."""

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional

import yaml

from .update import NormalizationPolicy


@dataclass
class NMFConfig:
    """Options recognized by the factorization driver."""

    rank: int = 10  # factorization dimensionality
    epochs: int = 10  # number of full item/user cycles
    n_items: Optional[int] = None  # expected item partition size
    n_users: Optional[int] = None  # expected user partition size
    n_jobs: int = 1  # worker threads per half-epoch, -1 for all cores
    normalization: str = 'item'  # 'item' or 'per_class'
    min_prediction: Optional[float] = None  # prediction clip range
    max_prediction: Optional[float] = None
    init_low: float = 0.  # uniform range of the initial factors
    init_high: float = 1.
    seed: Optional[int] = None
    verbose: bool = False  # progress bars and info messages
    debug: bool = False  # per-vertex debug snapshots
    log_level: str = 'WARNING'

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Check option values, raise ValueError naming the bad key."""
        for key in ('rank', 'epochs'):
            value = getattr(self, key)
            if (not isinstance(value, int) or isinstance(value, bool)
                    or value <= 0):
                raise ValueError(
                    f"{key} must be a positive integer, got {value!r}"
                )
        for key in ('n_items', 'n_users'):
            value = getattr(self, key)
            if value is not None and (not isinstance(value, int)
                                      or value < 0):
                raise ValueError(
                    f"{key} must be a non-negative integer, got {value!r}"
                )
        if not isinstance(self.n_jobs, int) or self.n_jobs == 0:
            raise ValueError(f"n_jobs must be a non-zero integer, "
                             f"got {self.n_jobs!r}")
        available = [ix.value for ix in NormalizationPolicy]
        if self.normalization not in available:
            raise ValueError(
                f"Unknown normalization: {self.normalization}. "
                f"Available options: {', '.join(available)}"
            )
        if (self.min_prediction is not None
                and self.max_prediction is not None
                and self.min_prediction > self.max_prediction):
            raise ValueError("min_prediction must not exceed max_prediction")
        if self.init_low < 0. or self.init_high <= self.init_low:
            raise ValueError(
                f"Need 0 <= init_low < init_high, got "
                f"[{self.init_low}, {self.init_high})"
            )

    @property
    def policy(self) -> NormalizationPolicy:
        """Normalization policy enum."""
        return NormalizationPolicy(self.normalization)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'NMFConfig':
        """Build from a possibly nested dict (sections are dropped)."""
        flat = {
            key.split('.')[-1]: val
            for key, val in flatten_config(config).items()
        }
        known = {ix.name for ix in fields(cls)}
        unknown = sorted(set(flat) - known)
        if unknown:
            raise ValueError(
                f"Unknown config keys: {', '.join(unknown)}. "
                f"Available options: {', '.join(sorted(known))}"
            )
        return cls(**flat)

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict of all options."""
        return asdict(self)

    def update(self, **overrides) -> 'NMFConfig':
        """New config with non-None overrides applied."""
        values = self.to_dict()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return NMFConfig(**values)


def flatten_config(config: Dict) -> Dict:
    """Flatten nested config dict to single level with dots."""
    flat = {}
    for section, values in config.items():
        if isinstance(values, dict):
            for key, val in values.items():
                flat[f"{section}.{key}"] = val
        else:
            flat[section] = values
    return flat


def load_config(config_path: str) -> NMFConfig:
    """Load configuration from YAML file."""
    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)
    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ValueError(
            f"Config file {config_path} must hold a mapping, "
            f"got {type(config).__name__}"
        )
    return NMFConfig.from_dict(config)
