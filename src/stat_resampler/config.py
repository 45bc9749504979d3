from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from stat_resampler.errors import InvalidArgument

STRATEGIES = ("bootstrap", "monte_carlo", "kfold")


@dataclass
class ResampleConfig:
    """Resampling strategy parameters."""
    strategy: str = "bootstrap"  # "bootstrap", "monte_carlo" or "kfold"
    n_resamples: int = 100
    train_fraction: float = 0.8  # monte_carlo only
    train_size: int | None = None  # overrides train_fraction when set
    seed: int | None = None
    out_of_bag: bool = False  # bootstrap only: use never-drawn rows as test set
    n_jobs: int = 1

    def __post_init__(self):
        if self.strategy not in STRATEGIES:
            raise InvalidArgument(
                f"strategy must be one of {STRATEGIES}, got '{self.strategy}'"
            )
        if isinstance(self.n_resamples, bool) or not isinstance(self.n_resamples, (int, np.integer)) \
                or self.n_resamples < 1:
            raise InvalidArgument(
                f"n_resamples must be a positive integer, got {self.n_resamples!r}"
            )
        if not 0 < self.train_fraction < 1:
            raise InvalidArgument(
                f"train_fraction must be in (0, 1), got {self.train_fraction}"
            )
        if self.n_jobs == 0:
            raise InvalidArgument("n_jobs must be non-zero")

    def generator(self):
        """Build the ResampleGenerator described by this config."""
        from stat_resampler.data.splits import ResampleGenerator

        return ResampleGenerator(
            strategy=self.strategy,
            n_resamples=self.n_resamples,
            train_fraction=self.train_fraction,
            train_size=self.train_size,
            seed=self.seed,
            out_of_bag=self.out_of_bag,
        )


@dataclass
class AggregateConfig:
    """Reduction parameters for aggregate summaries."""
    ci_level: float = 0.95

    def __post_init__(self):
        if not 0 < self.ci_level < 1:
            raise InvalidArgument(f"ci_level must be in (0, 1), got {self.ci_level}")


@dataclass
class TrackingConfig:
    """MLflow experiment tracking."""
    enabled: bool = False
    experiment_name: str = "stat-resampler"
    tracking_uri: str = "mlruns"


@dataclass
class AppConfig:
    """Top-level application configuration."""
    resample: ResampleConfig = field(default_factory=ResampleConfig)
    aggregate: AggregateConfig = field(default_factory=AggregateConfig)
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    output_dir: Path = field(default_factory=lambda: Path("results"))
