import logging
import pandas as pd
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from joblib import Parallel, delayed

from stat_resampler.config import ResampleConfig
from stat_resampler.data.splits import ResampleSplit
from stat_resampler.errors import AllResamplesFailure, FitFailure, InvalidArgument
from stat_resampler.evaluation.aggregate import (
    PairedComparison, paired_comparison, summarize_coefficients, summarize_errors,
)
from stat_resampler.evaluation.diagnostics import rmse
from stat_resampler.models.base import FittedModel, ModelSpec

logger = logging.getLogger(__name__)

COEFFICIENTS = "coefficients"
PREDICTION_ERROR = "prediction_error"

COEFFICIENT_COLUMNS = ["resample", "variant", "term", "estimate"]
ERROR_COLUMNS = ["resample", "variant", "train_rmse", "rmse"]
FAILURE_COLUMNS = ["resample", "variant", "reason"]

Variants = ModelSpec | list[ModelSpec] | Mapping[str, ModelSpec]


@dataclass
class EvaluationResult:
    """Per-resample evaluation records for one or more model variants."""
    mode: str
    records: pd.DataFrame
    failures: pd.DataFrame
    variants: list[str]
    n_resamples: int
    config: ResampleConfig = field(default_factory=ResampleConfig)

    def failure_count(self, variant: str | None = None) -> int:
        """Number of (resample, variant) fits excluded because they failed."""
        if variant is None:
            return len(self.failures)
        return int((self.failures["variant"] == variant).sum())

    def summarize(self, ci_level: float = 0.95, terms: list[str] | None = None) -> pd.DataFrame:
        """Aggregate summary keyed by (variant, term)."""
        if self.mode == COEFFICIENTS:
            return summarize_coefficients(
                self.records, self.failures, ci_level, terms=terms, variants=self.variants
            )
        return summarize_errors(self.records, self.failures, ci_level, variants=self.variants)

    def paired(self, variant_a: str, variant_b: str, term: str | None = None) -> PairedComparison:
        """Resample-by-resample comparison of two variants.

        Compares held-out RMSE in prediction-error mode and the estimate of
        ``term`` in coefficient mode.
        """
        if self.mode == COEFFICIENTS:
            if term is None:
                raise InvalidArgument("Pass term= to compare coefficient estimates")
            return paired_comparison(self.records, variant_a, variant_b, "estimate", term=term)
        return paired_comparison(self.records, variant_a, variant_b, "rmse")

    def summary(self, ci_level: float = 0.95) -> str:
        table = self.summarize(ci_level)
        pct = f"{ci_level:.0%}"
        lines = [
            f"Resampling Evaluation ({self.mode}, {self.config.strategy}, "
            f"{self.n_resamples} resamples)",
            "=" * 78,
            f"{'Variant':<14} {'Term':<24} {'Mean':>10} {'Std':>9} {pct + ' CI':>18}",
            "-" * 78,
        ]
        for _, row in table.iterrows():
            ci = f"[{row['ci_lower']:.3f}, {row['ci_upper']:.3f}]"
            lines.append(
                f"{str(row['variant'])[:14]:<14} {str(row['term'])[:24]:<24} "
                f"{row['mean']:>10.4f} {row['std']:>9.4f} {ci:>18}"
            )
        lines.append("-" * 78)
        for variant in self.variants:
            n_failed = self.failure_count(variant)
            status = "OK" if n_failed == 0 else "excluded from summary"
            lines.append(f"Failed fits [{variant}]: {n_failed} of {self.n_resamples} ({status})")
        return "\n".join(lines)

    def to_csv(self, path: Path | str, ci_level: float = 0.95) -> Path:
        """Write the aggregate summary table to a CSV file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.summarize(ci_level).to_csv(path, index=False)
        return path


def _normalize_variants(variants: Variants) -> dict[str, ModelSpec]:
    if isinstance(variants, ModelSpec):
        return {variants.name: variants}
    if isinstance(variants, Mapping):
        specs = dict(variants)
    else:
        specs = {}
        for spec in variants:
            if spec.name in specs:
                raise InvalidArgument(f"Duplicate variant name '{spec.name}'")
            specs[spec.name] = spec
    if not specs:
        raise InvalidArgument("At least one model variant is required")
    return specs


def _checked_rmse(model: FittedModel, data: pd.DataFrame, name: str) -> float:
    # sklearn rejects NaN / inf predictions with ValueError
    try:
        return rmse(model, data)
    except ValueError as e:
        raise FitFailure(f"Cannot score predictions: {e}", name) from e


def _evaluate_split(
    split: ResampleSplit,
    specs: dict[str, ModelSpec],
    mode: str,
) -> tuple[list[dict], list[dict]]:
    """Fit every variant on one split; return (record rows, failure rows)."""
    rows: list[dict] = []
    failures: list[dict] = []
    for name, spec in specs.items():
        try:
            if mode == PREDICTION_ERROR and not split.has_test:
                raise FitFailure("Resample has no held-out rows", name)
            model = spec.fit(split.train)
            if mode == COEFFICIENTS:
                for coef in model.coefficients():
                    rows.append({
                        "resample": split.index, "variant": name,
                        "term": coef.name, "estimate": coef.estimate,
                    })
            else:
                rows.append({
                    "resample": split.index, "variant": name,
                    "train_rmse": _checked_rmse(model, split.train, name),
                    "rmse": _checked_rmse(model, split.test, name),
                })
        except FitFailure as e:
            failures.append({"resample": split.index, "variant": name, "reason": str(e)})
    return rows, failures


class ResamplingEngine:
    """Refit model variants on every resample and collect evaluation records.

    Pipeline: dataset -> N splits -> N x variants fits -> records.

    All variants see the same splits, so records can be compared resample by
    resample. Each resample is an independent job run through joblib; jobs
    return their rows and the engine concatenates them after the join.
    """

    def __init__(self, config: ResampleConfig | None = None):
        self.config = config or ResampleConfig()

    def run_coefficients(self, data: pd.DataFrame, variants: Variants) -> EvaluationResult:
        """Record every coefficient estimate of every variant on every resample."""
        return self._run(data, variants, COEFFICIENTS)

    def run_prediction_error(self, data: pd.DataFrame, variants: Variants) -> EvaluationResult:
        """Record held-out (and training) RMSE of every variant on every resample."""
        cfg = self.config
        if cfg.strategy == "bootstrap" and not cfg.out_of_bag:
            raise InvalidArgument(
                "Bootstrap resamples have no held-out rows; use out_of_bag=True "
                "or a monte_carlo / kfold strategy"
            )
        return self._run(data, variants, PREDICTION_ERROR)

    def _run(self, data: pd.DataFrame, variants: Variants, mode: str) -> EvaluationResult:
        specs = _normalize_variants(variants)
        # Resolve on the full dataset so every resample shares levels and bases
        specs = {name: spec.resolve(data) for name, spec in specs.items()}

        generator = self.config.generator()
        splits = generator.generate(data)
        logger.info(
            "Running %s evaluation: %d %s resamples x %d variants (n_jobs=%d)",
            mode, len(generator), self.config.strategy, len(specs), self.config.n_jobs,
        )

        outputs = Parallel(n_jobs=self.config.n_jobs)(
            delayed(_evaluate_split)(split, specs, mode) for split in splits
        )

        rows = [row for out_rows, _ in outputs for row in out_rows]
        failed = [row for _, out_failed in outputs for row in out_failed]
        columns = COEFFICIENT_COLUMNS if mode == COEFFICIENTS else ERROR_COLUMNS
        records = pd.DataFrame(rows, columns=columns)
        failures = pd.DataFrame(failed, columns=FAILURE_COLUMNS)

        for row in failed:
            logger.debug("Resample %d, %s: %s", row["resample"], row["variant"], row["reason"])

        for name in specs:
            if not (records["variant"] == name).any():
                reasons = failures.loc[failures["variant"] == name, "reason"].tolist()
                raise AllResamplesFailure(name, len(reasons), reasons)

        if len(failures):
            logger.warning(
                "%d of %d fits failed and were excluded",
                len(failures), len(generator) * len(specs),
            )
        logger.info("Finished %s evaluation: %d records", mode, len(records))

        return EvaluationResult(
            mode=mode,
            records=records,
            failures=failures,
            variants=list(specs),
            n_resamples=len(generator),
            config=self.config,
        )
