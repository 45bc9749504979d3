import itertools
import pandas as pd
from dataclasses import dataclass, field
from scipy.stats import chi2
from statsmodels.stats.anova import anova_lm

from stat_resampler.errors import InvalidArgument
from stat_resampler.evaluation.aggregate import PairedComparison
from stat_resampler.evaluation.engine import PREDICTION_ERROR, EvaluationResult
from stat_resampler.models.base import FittedModel
from stat_resampler.models.linear import OLSModel


@dataclass
class NestedTestResult:
    """Significance test of a larger model against a nested smaller one."""
    test: str  # "F" or "LR"
    small: str
    large: str
    statistic: float
    df_diff: int
    p_value: float

    def summary(self) -> str:
        return (
            f"{self.test}-test {self.small} vs {self.large}: "
            f"stat={self.statistic:.4f}, df={self.df_diff}, p={self.p_value:.4g}"
        )


@dataclass
class HoldoutComparison:
    """Held-out RMSE per variant plus every pairwise paired comparison."""
    summary: pd.DataFrame
    pairs: list[PairedComparison] = field(default_factory=list)

    def best_variant(self) -> str:
        return str(self.summary.sort_values("mean").iloc[0]["variant"])


def nested_model_test(small: FittedModel, large: FittedModel) -> NestedTestResult:
    """Test whether ``large`` fits significantly better than nested ``small``.

    Both models must be fitted to the same rows and every coefficient of
    ``small`` must also appear in ``large``. Least-squares pairs get an
    F-test; other families a likelihood-ratio test. Use
    :func:`compare_holdout_rmse` for models that are not nested.
    """
    if small.result.nobs != large.result.nobs:
        raise InvalidArgument(
            f"Models were fitted on different rows ({small.result.nobs} vs {large.result.nobs})"
        )
    small_terms = {c.name for c in small.coefficients()}
    large_terms = {c.name for c in large.coefficients()}
    if not small_terms < large_terms:
        extra = sorted(small_terms - large_terms)
        raise InvalidArgument(
            f"'{small.name}' is not nested in '{large.name}'"
            + (f": terms {extra} are missing from the larger model" if extra else "")
        )

    if isinstance(small, OLSModel) and isinstance(large, OLSModel):
        table = anova_lm(small.result, large.result)
        return NestedTestResult(
            test="F",
            small=small.name,
            large=large.name,
            statistic=float(table["F"].iloc[1]),
            df_diff=int(table["df_diff"].iloc[1]),
            p_value=float(table["Pr(>F)"].iloc[1]),
        )

    for model in (small, large):
        if getattr(model.result, "method", None) == "REML":
            raise InvalidArgument(
                f"'{model.name}' was fitted by REML; refit with reml=False to compare fixed effects"
            )
    df_diff = len(large_terms) - len(small_terms)
    stat = max(2 * (float(large.result.llf) - float(small.result.llf)), 0.0)
    return NestedTestResult(
        test="LR",
        small=small.name,
        large=large.name,
        statistic=stat,
        df_diff=df_diff,
        p_value=float(chi2.sf(stat, df_diff)),
    )


def compare_holdout_rmse(result: EvaluationResult, ci_level: float = 0.95) -> HoldoutComparison:
    """Compare variants by held-out RMSE on shared cross-validation splits."""
    if result.mode != PREDICTION_ERROR:
        raise InvalidArgument("compare_holdout_rmse needs a prediction-error evaluation")
    pairs = [
        result.paired(a, b) for a, b in itertools.combinations(result.variants, 2)
    ]
    return HoldoutComparison(summary=result.summarize(ci_level), pairs=pairs)
