import numpy as np
import pandas as pd
import statsmodels.formula.api as smf
from dataclasses import replace

from stat_resampler.errors import InvalidArgument
from stat_resampler.models.base import ModelSpec
from stat_resampler.models.formula import FormulaSpec
from stat_resampler.models.linear import OLSModel


def hinge_name(field: str, change_point: float) -> str:
    label = f"{change_point:g}".replace("-", "m").replace(".", "_")
    return f"{field}_cp{label}"


def change_point_features(
    data: pd.DataFrame,
    field: str,
    change_points: list[float],
) -> tuple[pd.DataFrame, list[str]]:
    """Add hinge columns ``max(field - k, 0)`` for each change point ``k``.

    Returns a new frame and the names of the added columns. Together with
    ``field`` itself these give a continuous piecewise-linear fit whose slope
    changes by the hinge coefficient at each change point.
    """
    if field not in data.columns:
        raise InvalidArgument(f"Field '{field}' not in dataset")
    out = data.copy()
    names = []
    for cp in change_points:
        name = hinge_name(field, cp)
        out[name] = np.maximum(out[field].to_numpy(dtype=float) - cp, 0.0)
        names.append(name)
    return out, names


class PiecewiseModel(OLSModel):
    """OLS fit on change-point features; predicts from the raw field."""

    def __init__(self, name, formula, result, field, change_points):
        super().__init__(name, formula, result)
        self.field = field
        self.change_points = list(change_points)

    def predict(self, data: pd.DataFrame) -> np.ndarray:
        expanded, _ = change_point_features(data, self.field, self.change_points)
        return super().predict(expanded)


class PiecewiseSpec(ModelSpec):
    """Piecewise-linear regression in ``field`` with fixed change points."""
    kind = "piecewise"

    def __init__(
        self,
        formula: FormulaSpec | str,
        field: str,
        change_points: list[float],
        name: str | None = None,
    ):
        super().__init__(formula, name=name)
        if not change_points:
            raise InvalidArgument("PiecewiseSpec needs at least one change point")
        self.field = field
        self.change_points = sorted(float(cp) for cp in change_points)

    def _fit(self, data: pd.DataFrame, formula: FormulaSpec) -> PiecewiseModel:
        expanded, names = change_point_features(data, self.field, self.change_points)
        predictors = formula.predictors
        if self.field not in predictors:
            predictors = (*predictors, self.field)
        hinged = replace(formula, predictors=(*predictors, *names))
        result = smf.ols(hinged.to_formula(), data=expanded).fit()
        return PiecewiseModel(self.name, hinged, result, self.field, self.change_points)
