import numpy as np
import pandas as pd
from dataclasses import dataclass

from stat_resampler.errors import AggregationError, InvalidArgument

SUMMARY_COLUMNS = [
    "variant", "term", "mean", "std", "ci_lower", "ci_upper", "n_resamples", "n_failed",
]


@dataclass
class PairedComparison:
    """Variant A against variant B on the same resamples."""
    variant_a: str
    variant_b: str
    column: str
    n_pairs: int
    mean_difference: float  # mean of (a - b)
    std_difference: float
    a_wins: float  # fraction of resamples where a < b
    b_wins: float
    ties: float

    def summary(self) -> str:
        return (
            f"{self.variant_a} vs {self.variant_b} ({self.column}, {self.n_pairs} paired resamples): "
            f"mean diff {self.mean_difference:+.4f}, "
            f"{self.variant_a} lower in {self.a_wins:.0%}, "
            f"{self.variant_b} lower in {self.b_wins:.0%}"
        )


def percentile_interval(values: np.ndarray, ci_level: float = 0.95) -> tuple[float, float]:
    """Empirical percentile interval, linear interpolation between order statistics."""
    if not 0 < ci_level < 1:
        raise InvalidArgument(f"ci_level must be in (0, 1), got {ci_level}")
    alpha = (1 - ci_level) / 2
    lo, hi = np.percentile(
        np.asarray(values, dtype=float), [alpha * 100, (1 - alpha) * 100], method="linear"
    )
    return float(lo), float(hi)


def _failure_counts(failures: pd.DataFrame | None) -> dict[str, int]:
    if failures is None or failures.empty:
        return {}
    return failures.groupby("variant")["resample"].nunique().to_dict()


def _reduce(
    records: pd.DataFrame,
    value_column: str,
    failures: pd.DataFrame | None,
    ci_level: float,
    variants: list[str] | None,
) -> pd.DataFrame:
    failed = _failure_counts(failures)
    rows = []
    for (variant, term), values in records.groupby(["variant", "term"], sort=False)[value_column]:
        lo, hi = percentile_interval(values.to_numpy(), ci_level)
        rows.append({
            "variant": variant,
            "term": term,
            "mean": float(values.mean()),
            "std": float(values.std(ddof=1)) if len(values) > 1 else float("nan"),
            "ci_lower": lo,
            "ci_upper": hi,
            "n_resamples": int(values.count()),
            "n_failed": int(failed.get(variant, 0)),
        })
    summary = pd.DataFrame(rows, columns=SUMMARY_COLUMNS)
    if variants is not None:
        order = {v: i for i, v in enumerate(variants)}
        summary = summary.sort_values(
            "variant", key=lambda s: s.map(order), kind="stable"
        ).reset_index(drop=True)
    return summary


def summarize_coefficients(
    records: pd.DataFrame,
    failures: pd.DataFrame | None = None,
    ci_level: float = 0.95,
    terms: list[str] | None = None,
    variants: list[str] | None = None,
) -> pd.DataFrame:
    """Reduce per-resample coefficient estimates by (variant, term).

    Args:
        records: Rows with columns resample, variant, term, estimate
        failures: Rows with columns resample, variant, reason
        ci_level: Width of the empirical percentile interval
        terms: Only these coefficient names; each must appear in some fit
        variants: Output order of variants
    """
    if terms is not None:
        present = set(records["term"]) if not records.empty else set()
        missing = [t for t in terms if t not in present]
        if missing:
            raise AggregationError(
                f"Coefficients not present in any successful fit: {missing}"
            )
        records = records[records["term"].isin(terms)]
    return _reduce(records, "estimate", failures, ci_level, variants)


def summarize_errors(
    records: pd.DataFrame,
    failures: pd.DataFrame | None = None,
    ci_level: float = 0.95,
    variants: list[str] | None = None,
) -> pd.DataFrame:
    """Reduce per-resample held-out RMSE by variant (term is ``"rmse"``).

    Also reports the mean training RMSE so over-fitting shows up as a
    large gap between the two.
    """
    if records.empty:
        return pd.DataFrame(columns=SUMMARY_COLUMNS + ["train_rmse_mean"])
    long = records.assign(term="rmse")
    summary = _reduce(long, "rmse", failures, ci_level, variants)
    train_means = records.groupby("variant")["train_rmse"].mean()
    summary["train_rmse_mean"] = summary["variant"].map(train_means).astype(float)
    return summary


def paired_comparison(
    records: pd.DataFrame,
    variant_a: str,
    variant_b: str,
    column: str = "rmse",
    term: str | None = None,
) -> PairedComparison:
    """Compare two variants resample-by-resample on shared splits.

    Only resamples where both variants fit successfully are paired.
    """
    if term is not None:
        records = records[records["term"] == term]
    for variant in (variant_a, variant_b):
        if variant not in set(records["variant"]):
            raise AggregationError(f"No successful records for variant '{variant}'")

    a = records.loc[records["variant"] == variant_a].set_index("resample")[column]
    b = records.loc[records["variant"] == variant_b].set_index("resample")[column]
    paired = pd.concat({"a": a, "b": b}, axis=1, join="inner")
    if paired.empty:
        raise AggregationError(
            f"Variants '{variant_a}' and '{variant_b}' share no successful resamples"
        )

    diff = paired["a"] - paired["b"]
    n = len(paired)
    return PairedComparison(
        variant_a=variant_a,
        variant_b=variant_b,
        column=column,
        n_pairs=n,
        mean_difference=float(diff.mean()),
        std_difference=float(diff.std(ddof=1)) if n > 1 else float("nan"),
        a_wins=float((diff < 0).sum() / n),
        b_wins=float((diff > 0).sum() / n),
        ties=float((diff == 0).sum() / n),
    )
