import numpy as np
import pandas as pd
from statsmodels.gam.api import BSplines, GLMGam

from stat_resampler.errors import InvalidArgument
from stat_resampler.models.base import ModelSpec, StatsmodelsModel
from stat_resampler.models.formula import FormulaSpec
from stat_resampler.models.glm import make_family


class GAMModel(StatsmodelsModel):
    """Penalized B-spline additive model fit."""

    def predict(self, data: pd.DataFrame) -> np.ndarray:
        smooth = data[list(self.formula.smooth)]
        return np.asarray(
            self.result.predict(exog=data, exog_smooth=smooth), dtype=float
        )

    def summary_statistics(self) -> dict[str, float]:
        stats = super().summary_statistics()
        stats["edf"] = float(np.sum(self.result.edf))
        return stats


class GAMSpec(ModelSpec):
    """Generalized additive model: parametric formula plus B-spline smooths.

    Each ``s(field)`` term gets a cubic (by default) B-spline basis with
    ``df`` columns and a second-derivative penalty weighted by ``alpha``.
    A small ``df`` or large ``alpha`` gives a smooth curve; a large ``df``
    with ``alpha`` near zero gives a very flexible, easily overfit one.
    """
    kind = "gam"

    def __init__(
        self,
        formula: FormulaSpec | str,
        df: int = 6,
        degree: int = 3,
        alpha: float = 0.0,
        family: str = "gaussian",
        name: str | None = None,
    ):
        super().__init__(formula, name=name)
        if not self.formula.smooth:
            raise InvalidArgument("GAMSpec needs at least one smooth term, e.g. 'y ~ s(x)'")
        if df <= degree:
            raise InvalidArgument(f"df ({df}) must exceed the spline degree ({degree})")
        if alpha < 0:
            raise InvalidArgument(f"alpha must be non-negative, got {alpha}")
        make_family(family)
        self.df = df
        self.degree = degree
        self.alpha = alpha
        self.family = family

    def _fit(self, data: pd.DataFrame, formula: FormulaSpec) -> GAMModel:
        smooth = list(formula.smooth)
        k = len(smooth)
        # Pin the boundary knots to the resolved range so held-out rows
        # inside that range can always be evaluated.
        knot_kwds = [
            {"lower_bound": formula.bounds[s][0], "upper_bound": formula.bounds[s][1]}
            for s in smooth
        ]
        smoother = BSplines(
            data[smooth], df=[self.df] * k, degree=[self.degree] * k, knot_kwds=knot_kwds
        )
        model = GLMGam.from_formula(
            formula.to_formula(),
            data=data,
            smoother=smoother,
            alpha=[self.alpha] * k,
            family=make_family(self.family),
        )
        return GAMModel(self.name, formula, model.fit())
