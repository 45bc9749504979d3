import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Callable

from stat_resampler.config import ResampleConfig
from stat_resampler.data.splits import ResampleGenerator
from stat_resampler.evaluation.aggregate import percentile_interval
from stat_resampler.evaluation.engine import ResamplingEngine
from stat_resampler.models.base import ModelSpec


@dataclass
class BootstrapResult:
    """Confidence interval from bootstrap resampling."""
    metric_name: str
    point_estimate: float
    ci_lower: float  # 2.5th percentile at the default level
    ci_upper: float  # 97.5th percentile
    samples: np.ndarray
    is_significant: bool  # CI doesn't cross zero

    @property
    def ci_width(self) -> float:
        return self.ci_upper - self.ci_lower

    @property
    def std_error(self) -> float:
        return float(np.std(self.samples, ddof=1)) if len(self.samples) > 1 else float("nan")


def bootstrap_statistic(
    data: pd.DataFrame | pd.Series | np.ndarray,
    statistic: Callable,
    n_resamples: int = 1000,
    ci_level: float = 0.95,
    seed: int | None = 42,
    metric_name: str = "",
) -> BootstrapResult:
    """Bootstrap confidence interval for any statistic.

    Args:
        data: DataFrame (passed whole to ``statistic``) or 1-d values
        statistic: Function computing a scalar from one resample
        n_resamples: Number of bootstrap resamples
        ci_level: Confidence level (e.g., 0.95 for 95% CI)
        seed: Random seed for reproducibility
        metric_name: Label carried on the result
    """
    if isinstance(data, pd.DataFrame):
        frame, unwrap = data, False
    else:
        frame, unwrap = pd.DataFrame({"value": np.asarray(data)}), True

    def apply(df: pd.DataFrame) -> float:
        return float(statistic(df["value"].to_numpy() if unwrap else df))

    generator = ResampleGenerator("bootstrap", n_resamples=n_resamples, seed=seed)
    boot_stats = np.array([apply(split.train) for split in generator.generate(frame)])
    ci_lower, ci_upper = percentile_interval(boot_stats, ci_level)

    return BootstrapResult(
        metric_name=metric_name or getattr(statistic, "__name__", "statistic"),
        point_estimate=apply(frame),
        ci_lower=ci_lower,
        ci_upper=ci_upper,
        samples=boot_stats,
        # Significant if CI doesn't cross zero
        is_significant=(ci_lower > 0) or (ci_upper < 0),
    )


def bootstrap_coefficients(
    data: pd.DataFrame,
    spec: ModelSpec,
    n_resamples: int = 1000,
    ci_level: float = 0.95,
    seed: int | None = 42,
    n_jobs: int = 1,
) -> pd.DataFrame:
    """Bootstrap distribution summary of each coefficient of one model.

    Adds the conventional model-based estimate and standard error next to the
    bootstrap mean and standard deviation, so the two can be compared (they
    diverge when, for example, the error variance is not constant).
    """
    engine = ResamplingEngine(ResampleConfig(
        strategy="bootstrap", n_resamples=n_resamples, seed=seed, n_jobs=n_jobs,
    ))
    result = engine.run_coefficients(data, spec)
    summary = result.summarize(ci_level)

    full = spec.fit(data).tidy()
    fitted = full.set_index("term")
    summary["full_estimate"] = summary["term"].map(fitted["estimate"])
    summary["model_std_error"] = summary["term"].map(fitted["std_error"])
    return summary
