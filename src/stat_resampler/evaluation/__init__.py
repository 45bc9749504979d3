from .engine import ResamplingEngine, EvaluationResult
from .aggregate import (
    PairedComparison, paired_comparison, percentile_interval,
    summarize_coefficients, summarize_errors,
)
from .bootstrap import BootstrapResult, bootstrap_coefficients, bootstrap_statistic
from .comparison import (
    HoldoutComparison, NestedTestResult, compare_holdout_rmse, nested_model_test,
)
from .diagnostics import add_predictions, add_residuals, complete_rows, residual_summary, rmse

__all__ = [
    "ResamplingEngine", "EvaluationResult",
    "PairedComparison", "paired_comparison", "percentile_interval",
    "summarize_coefficients", "summarize_errors",
    "BootstrapResult", "bootstrap_coefficients", "bootstrap_statistic",
    "HoldoutComparison", "NestedTestResult", "compare_holdout_rmse", "nested_model_test",
    "add_predictions", "add_residuals", "complete_rows", "residual_summary", "rmse",
]
