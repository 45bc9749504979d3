import numpy as np
import pandas as pd
from sklearn.metrics import mean_squared_error

from stat_resampler.models.base import FittedModel


def add_predictions(
    data: pd.DataFrame, model: FittedModel, column: str = "pred"
) -> pd.DataFrame:
    """Return a copy of ``data`` with the model's predictions appended."""
    out = data.copy()
    out[column] = model.predict(data)
    return out


def add_residuals(
    data: pd.DataFrame, model: FittedModel, column: str = "resid"
) -> pd.DataFrame:
    """Return a copy of ``data`` with observed minus predicted outcome."""
    out = data.copy()
    observed = data[model.formula.outcome].to_numpy(dtype=float)
    out[column] = observed - model.predict(data)
    return out


def complete_rows(data: pd.DataFrame, model: FittedModel) -> pd.DataFrame:
    """Rows of ``data`` with no missing value in any field the model reads."""
    fields = [f for f in model.formula.fields if f in data.columns]
    return data.dropna(subset=fields)


def rmse(model: FittedModel, data: pd.DataFrame) -> float:
    """Root-mean-squared error of ``model`` on ``data``.

    Rows missing the outcome or a predictor are skipped, matching the rows
    the fit itself drops.
    """
    data = complete_rows(data, model)
    if data.empty:
        raise ValueError("No complete rows to score")
    observed = data[model.formula.outcome].to_numpy(dtype=float)
    predicted = model.predict(data)
    return float(np.sqrt(mean_squared_error(observed, predicted)))


def residual_summary(data: pd.DataFrame, model: FittedModel) -> dict[str, float]:
    """Quick residual checks: centre, spread and spread against fitted values."""
    fitted = model.predict(data)
    resid = data[model.formula.outcome].to_numpy(dtype=float) - fitted
    # Correlation of |resid| with fitted values flags non-constant variance
    if np.std(fitted) > 0 and np.std(resid) > 0:
        spread_trend = float(np.corrcoef(np.abs(resid), fitted)[0, 1])
    else:
        spread_trend = 0.0
    return {
        "mean": float(np.mean(resid)),
        "std": float(np.std(resid, ddof=1)) if len(resid) > 1 else float("nan"),
        "rmse": float(np.sqrt(np.mean(resid ** 2))),
        "spread_trend": spread_trend,
    }
