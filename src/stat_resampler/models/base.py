import copy
import logging
import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Mapping

import joblib
import numpy as np
import pandas as pd
from patsy import PatsyError
from statsmodels.tools.sm_exceptions import (
    ConvergenceWarning, PerfectSeparationError, PerfectSeparationWarning,
)

from stat_resampler.errors import FitFailure, InvalidArgument
from stat_resampler.models.formula import FormulaSpec, clean_term_name

logger = logging.getLogger(__name__)

# Warnings that mean the estimates cannot be trusted
FATAL_WARNINGS = (ConvergenceWarning, PerfectSeparationWarning)


@dataclass
class Coefficient:
    """One estimated parameter."""
    name: str
    estimate: float
    std_error: float
    statistic: float
    p_value: float


class FittedModel(ABC):
    """Abstract base class for fitted regression models."""

    def __init__(self, name: str, formula: FormulaSpec, result: Any):
        self.name = name
        self.formula = formula
        self.result = result
        self.is_fitted = True

    @abstractmethod
    def predict(self, data: pd.DataFrame) -> np.ndarray:
        """Predict the mean outcome for each row of ``data``."""
        pass

    @abstractmethod
    def coefficients(self) -> list[Coefficient]:
        """Estimated parameters in model order."""
        pass

    @abstractmethod
    def summary_statistics(self) -> dict[str, float]:
        """One-row model summary (fit statistics)."""
        pass

    def predict_record(self, record: Mapping[str, Any]) -> float:
        """Predict for a single record given as a field -> value mapping."""
        return float(self.predict(pd.DataFrame([dict(record)]))[0])

    def coefficient(self, name: str) -> Coefficient:
        for coef in self.coefficients():
            if coef.name == name:
                return coef
        raise KeyError(f"No coefficient named '{name}' in {self.name}")

    def tidy(self, conf_level: float = 0.95, exponentiate: bool = False) -> pd.DataFrame:
        """Coefficient table with normal-approximation confidence limits.

        Args:
            conf_level: Confidence level for conf_low/conf_high
            exponentiate: Report exp(estimate) and exp(limits), e.g. odds ratios
        """
        from scipy.stats import norm

        if not 0 < conf_level < 1:
            raise InvalidArgument(f"conf_level must be in (0, 1), got {conf_level}")
        z = norm.ppf(0.5 + conf_level / 2)
        df = pd.DataFrame([asdict(c) for c in self.coefficients()])
        df = df.rename(columns={"name": "term"})
        df["conf_low"] = df["estimate"] - z * df["std_error"]
        df["conf_high"] = df["estimate"] + z * df["std_error"]
        if exponentiate:
            for col in ("estimate", "conf_low", "conf_high"):
                df[col] = np.exp(df[col])
        return df

    def save(self, path: Path) -> None:
        """Save fitted model to disk."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump({"name": self.name, "formula": self.formula, "model": self}, path)

    @staticmethod
    def load(path: Path) -> "FittedModel":
        """Load a model saved with :meth:`save`."""
        data = joblib.load(path)
        return data["model"]


class StatsmodelsModel(FittedModel):
    """Fitted model backed by a statsmodels results object."""

    def predict(self, data: pd.DataFrame) -> np.ndarray:
        return np.asarray(self.result.predict(data), dtype=float)

    def coefficients(self) -> list[Coefficient]:
        res = self.result
        return [
            Coefficient(
                name=clean_term_name(str(raw)),
                estimate=float(res.params[raw]),
                std_error=float(res.bse[raw]),
                statistic=float(res.tvalues[raw]),
                p_value=float(res.pvalues[raw]),
            )
            for raw in res.params.index
        ]

    def summary_statistics(self) -> dict[str, float]:
        res = self.result
        # GLM results deprecate the deviance-based .bic
        bic = res.bic_llf if hasattr(res, "bic_llf") else res.bic
        return {
            "nobs": float(res.nobs),
            "r_squared": float(getattr(res, "rsquared", np.nan)),
            "adj_r_squared": float(getattr(res, "rsquared_adj", np.nan)),
            "log_likelihood": float(res.llf),
            "aic": float(res.aic),
            "bic": float(bic),
            "deviance": float(getattr(res, "deviance", getattr(res, "ssr", np.nan))),
            "df_resid": float(res.df_resid),
        }


class ModelSpec(ABC):
    """A fitting procedure plus formula: the unit the engine refits per resample.

    Subclasses implement :meth:`_fit`; :meth:`fit` wraps it with the checks
    that turn degenerate fits into :class:`FitFailure`.
    """
    kind = "model"

    def __init__(self, formula: FormulaSpec | str, name: str | None = None):
        if isinstance(formula, str):
            formula = FormulaSpec.parse(formula)
        self.formula = formula
        self.name = name or self.kind

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, formula='{self.formula}')"

    @abstractmethod
    def _fit(self, data: pd.DataFrame, formula: FormulaSpec) -> FittedModel:
        """Fit on ``data`` with an already-resolved formula."""
        pass

    def resolve(self, data: pd.DataFrame) -> "ModelSpec":
        """Copy of this spec whose formula is resolved against ``data``."""
        clone = copy.copy(self)
        clone.formula = self.formula.resolve(data)
        return clone

    def fit(self, data: pd.DataFrame) -> FittedModel:
        """Fit the model, raising FitFailure for degenerate or unconverged fits."""
        formula = self.formula if self.formula.resolved else self.formula.resolve(data)
        if len(data) < 2:
            raise FitFailure(f"Need at least 2 rows to fit, got {len(data)}", self.name)

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                model = self._fit(data, formula)
            except InvalidArgument:
                raise
            except (np.linalg.LinAlgError, PerfectSeparationError, PatsyError, ValueError) as e:
                raise FitFailure(f"{type(e).__name__}: {e}", self.name) from e

        for w in caught:
            if issubclass(w.category, FATAL_WARNINGS):
                raise FitFailure(f"{w.category.__name__}: {w.message}", self.name)
            logger.debug("%s fit warning: %s", self.name, w.message)

        self._check_design(model)
        return model

    def _check_design(self, model: FittedModel) -> None:
        exog = np.asarray(model.result.model.exog, dtype=float)
        n_rows, n_params = exog.shape
        if n_rows <= n_params:
            raise FitFailure(
                f"{n_rows} rows cannot identify {n_params} parameters", self.name
            )
        rank = np.linalg.matrix_rank(exog)
        if rank < n_params:
            raise FitFailure(
                f"Rank-deficient design ({rank} < {n_params}): collinear "
                "predictors or an unobserved category", self.name,
            )
        params = np.asarray(model.result.params, dtype=float)
        if not np.all(np.isfinite(params)):
            raise FitFailure("Non-finite parameter estimates", self.name)
