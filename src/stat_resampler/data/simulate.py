import numpy as np
import pandas as pd


def simulate_linear(
    n: int = 250,
    intercept: float = 2.0,
    slope: float = 3.0,
    noise_sd: float = 1.0,
    nonconstant: bool = False,
    seed: int | None = None,
) -> pd.DataFrame:
    """Simulate ``y = intercept + slope * x + error`` with ``x ~ N(1, 1)``.

    With ``nonconstant=True`` the error standard deviation grows as
    ``0.75 * |x|`` instead of staying at ``noise_sd``, which breaks the
    constant-variance assumption behind the usual OLS standard errors.
    """
    rng = np.random.default_rng(seed)
    x = rng.normal(1.0, 1.0, size=n)
    if nonconstant:
        error = rng.normal(0.0, 1.0, size=n) * 0.75 * np.abs(x)
    else:
        error = rng.normal(0.0, noise_sd, size=n)
    return pd.DataFrame({"x": x, "error": error, "y": intercept + slope * x + error})


def simulate_nonlinear(
    n: int = 100,
    noise_sd: float = 0.3,
    seed: int | None = None,
) -> pd.DataFrame:
    """Simulate ``y = 1 - 10 (x - 0.3)^2 + error`` with ``x ~ U(0, 1)``."""
    rng = np.random.default_rng(seed)
    x = rng.uniform(0.0, 1.0, size=n)
    y = 1 - 10 * (x - 0.3) ** 2 + rng.normal(0.0, noise_sd, size=n)
    return pd.DataFrame({"id": np.arange(1, n + 1), "x": x, "y": y})


def simulate_binary(
    n: int = 500,
    intercept: float = -0.5,
    slope: float = 1.2,
    seed: int | None = None,
) -> pd.DataFrame:
    """Simulate a logistic outcome with one numeric and one categorical predictor."""
    rng = np.random.default_rng(seed)
    x = rng.normal(0.0, 1.0, size=n)
    group = rng.choice(["a", "b", "c"], size=n, p=[0.5, 0.3, 0.2])
    shift = pd.Series(group).map({"a": 0.0, "b": 0.8, "c": -0.6}).to_numpy()
    logit = intercept + slope * x + shift
    y = rng.binomial(1, 1 / (1 + np.exp(-logit)))
    return pd.DataFrame({"x": x, "group": group, "y": y})
