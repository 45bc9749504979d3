import numpy as np
import pandas as pd
import statsmodels.api as sm
import statsmodels.formula.api as smf

from stat_resampler.errors import FitFailure, InvalidArgument
from stat_resampler.models.base import ModelSpec, StatsmodelsModel
from stat_resampler.models.formula import FormulaSpec

FAMILIES = {
    "gaussian": sm.families.Gaussian,
    "binomial": sm.families.Binomial,
    "poisson": sm.families.Poisson,
    "gamma": sm.families.Gamma,
}

LINKS = {
    "identity": sm.families.links.Identity,
    "logit": sm.families.links.Logit,
    "probit": sm.families.links.Probit,
    "cloglog": sm.families.links.CLogLog,
    "log": sm.families.links.Log,
    "inverse": sm.families.links.InversePower,
}


def make_family(family: str, link: str | None = None) -> sm.families.Family:
    """Build a statsmodels family from names, e.g. ("binomial", "logit")."""
    if family not in FAMILIES:
        raise InvalidArgument(f"Unknown family '{family}', expected one of {list(FAMILIES)}")
    if link is None:
        return FAMILIES[family]()
    if link not in LINKS:
        raise InvalidArgument(f"Unknown link '{link}', expected one of {list(LINKS)}")
    return FAMILIES[family](link=LINKS[link]())


class GLMModel(StatsmodelsModel):
    """Generalized linear model fit. Predictions are on the response scale."""

    def predict_linear(self, data: pd.DataFrame) -> np.ndarray:
        """Predictions on the link (linear predictor) scale."""
        return np.asarray(self.result.predict(data, which="linear"), dtype=float)

    def summary_statistics(self) -> dict[str, float]:
        stats = super().summary_statistics()
        stats["null_deviance"] = float(self.result.null_deviance)
        stats["pseudo_r_squared"] = float(self.result.pseudo_rsquared(kind="cs"))
        return stats


class GLMSpec(ModelSpec):
    """Generalized linear model with a named family and optional link."""
    kind = "glm"

    def __init__(
        self,
        formula: FormulaSpec | str,
        family: str = "gaussian",
        link: str | None = None,
        name: str | None = None,
    ):
        make_family(family, link)  # validate eagerly
        super().__init__(formula, name=name or f"glm_{family}")
        self.family = family
        self.link = link

    def _fit(self, data: pd.DataFrame, formula: FormulaSpec) -> GLMModel:
        if formula.smooth:
            raise InvalidArgument("GLM does not support smooth terms; use GAMSpec")
        if self.family == "binomial":
            outcome = data[formula.outcome]
            if outcome.nunique(dropna=True) < 2:
                raise FitFailure("Binary outcome is constant in this sample", self.name)
        result = smf.glm(
            formula.to_formula(), data=data, family=make_family(self.family, self.link)
        ).fit()
        if self.family == "binomial":
            residual = np.abs(np.asarray(result.model.endog) - np.asarray(result.mu))
            if np.all(residual < 1e-6):
                raise FitFailure("Perfect separation: every outcome predicted exactly", self.name)
        return GLMModel(self.name, formula, result)


class LogisticSpec(GLMSpec):
    """Logistic regression: binomial family, logit link."""
    kind = "logistic"

    def __init__(self, formula: FormulaSpec | str, name: str | None = None):
        super().__init__(formula, family="binomial", link="logit", name=name or "logistic")
