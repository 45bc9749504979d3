import re
import mlflow
from typing import Any

from stat_resampler.config import TrackingConfig
from stat_resampler.evaluation.engine import EvaluationResult

_INVALID_KEY_CHARS = re.compile(r"[^0-9A-Za-z_\-. /]")


def metric_key(*parts: str) -> str:
    """Join parts into an MLflow-safe metric name."""
    return _INVALID_KEY_CHARS.sub("_", ".".join(str(p) for p in parts))


class ResamplingTracker:
    """MLflow experiment tracking for resampling evaluations."""

    def __init__(self, config: TrackingConfig | None = None):
        self.config = config or TrackingConfig()
        mlflow.set_tracking_uri(self.config.tracking_uri)
        mlflow.set_experiment(self.config.experiment_name)

    def log_result(
        self,
        result: EvaluationResult,
        run_name: str | None = None,
        params: dict[str, Any] | None = None,
        ci_level: float = 0.95,
    ) -> str:
        """Log config, aggregate summary and failure counts in one run.

        Returns the MLflow run id.
        """
        cfg = result.config
        run_params = {
            "mode": result.mode,
            "strategy": cfg.strategy,
            "n_resamples": result.n_resamples,
            "seed": cfg.seed,
            "variants": ",".join(result.variants),
            "ci_level": ci_level,
        }
        if cfg.strategy == "monte_carlo":
            run_params["train_fraction"] = cfg.train_size or cfg.train_fraction
        run_params.update(params or {})

        metrics: dict[str, float] = {}
        for _, row in result.summarize(ci_level).iterrows():
            for stat in ("mean", "std", "ci_lower", "ci_upper"):
                metrics[metric_key(row["variant"], row["term"], stat)] = float(row[stat])
        for variant in result.variants:
            metrics[metric_key(variant, "n_failed")] = float(result.failure_count(variant))

        with mlflow.start_run(run_name=run_name) as run:
            mlflow.log_params(run_params)
            mlflow.log_metrics(metrics)
            return run.info.run_id
