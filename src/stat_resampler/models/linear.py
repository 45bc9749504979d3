import pandas as pd
import statsmodels.formula.api as smf

from stat_resampler.errors import InvalidArgument
from stat_resampler.models.base import ModelSpec, StatsmodelsModel
from stat_resampler.models.formula import FormulaSpec


class OLSModel(StatsmodelsModel):
    """Ordinary least squares fit."""

    @property
    def residual_std(self) -> float:
        return float(self.result.scale ** 0.5)


class OLSSpec(ModelSpec):
    """Ordinary least squares via ``statsmodels.formula.api.ols``."""
    kind = "ols"

    def _fit(self, data: pd.DataFrame, formula: FormulaSpec) -> OLSModel:
        if formula.smooth:
            raise InvalidArgument("OLS does not support smooth terms; use GAMSpec")
        result = smf.ols(formula.to_formula(), data=data).fit()
        return OLSModel(self.name, formula, result)
