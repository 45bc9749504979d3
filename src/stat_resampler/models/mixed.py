import numpy as np
import pandas as pd
import statsmodels.formula.api as smf

from stat_resampler.errors import InvalidArgument
from stat_resampler.models.base import Coefficient, ModelSpec, StatsmodelsModel
from stat_resampler.models.formula import FormulaSpec, clean_term_name


class MixedModel(StatsmodelsModel):
    """Linear mixed-effects fit with a random intercept per group.

    Predictions use the fixed effects only, so rows from unseen groups
    can be predicted.
    """

    def coefficients(self) -> list[Coefficient]:
        res = self.result
        return [
            Coefficient(
                name=clean_term_name(str(raw)),
                estimate=float(res.fe_params[raw]),
                std_error=float(res.bse_fe[raw]),
                statistic=float(res.tvalues[raw]),
                p_value=float(res.pvalues[raw]),
            )
            for raw in res.fe_params.index
        ]

    def summary_statistics(self) -> dict[str, float]:
        res = self.result
        return {
            "nobs": float(res.nobs),
            "n_groups": float(len(res.random_effects)),
            "log_likelihood": float(res.llf),
            "aic": float(res.aic),  # NaN under REML
            "group_variance": float(np.asarray(res.cov_re)[0, 0]),
            "residual_variance": float(res.scale),
        }

    def random_effects(self) -> pd.Series:
        """Estimated random intercept per group."""
        return pd.Series({k: float(v.iloc[0]) for k, v in self.result.random_effects.items()})


class MixedSpec(ModelSpec):
    """Linear mixed model via ``statsmodels.formula.api.mixedlm``."""
    kind = "mixed"

    def __init__(
        self,
        formula: FormulaSpec | str,
        group: str,
        reml: bool = True,
        name: str | None = None,
    ):
        super().__init__(formula, name=name)
        self.group = group
        self.reml = reml

    def _fit(self, data: pd.DataFrame, formula: FormulaSpec) -> MixedModel:
        if self.group not in data.columns:
            raise InvalidArgument(f"Group field '{self.group}' not in dataset")
        if formula.smooth:
            raise InvalidArgument("Mixed models do not support smooth terms")
        model = smf.mixedlm(formula.to_formula(), data=data, groups=data[self.group])
        return MixedModel(self.name, formula, model.fit(reml=self.reml))
