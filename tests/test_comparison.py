import pytest
import numpy as np
import pandas as pd
from stat_resampler.config import ResampleConfig
from stat_resampler.data.simulate import simulate_binary, simulate_nonlinear
from stat_resampler.errors import InvalidArgument
from stat_resampler.evaluation import (
    ResamplingEngine, compare_holdout_rmse, nested_model_test,
)
from stat_resampler.models import GAMSpec, LogisticSpec, MixedSpec, OLSSpec


@pytest.fixture
def quadratic_data():
    rng = np.random.default_rng(7)
    x = rng.uniform(-2, 2, size=150)
    return pd.DataFrame({
        "x": x,
        "x_sq": x ** 2,
        "noise": rng.normal(size=150),
        "y": 1 + x + 0.8 * x ** 2 + rng.normal(scale=0.5, size=150),
    })


def test_f_test_detects_needed_term(quadratic_data):
    small = OLSSpec("y ~ x", name="linear").fit(quadratic_data)
    large = OLSSpec("y ~ x + x_sq", name="quadratic").fit(quadratic_data)
    result = nested_model_test(small, large)
    assert result.test == "F"
    assert result.df_diff == 1
    assert result.p_value < 1e-6
    assert "linear vs quadratic" in result.summary()


def test_f_test_irrelevant_term_not_significant(quadratic_data):
    small = OLSSpec("y ~ x + x_sq").fit(quadratic_data)
    large = OLSSpec("y ~ x + x_sq + noise").fit(quadratic_data)
    assert nested_model_test(small, large).p_value > 0.001


def test_likelihood_ratio_for_glm():
    df = simulate_binary(n=600, seed=4)
    small = LogisticSpec("y ~ x").fit(df)
    large = LogisticSpec("y ~ x + group").fit(df)
    result = nested_model_test(small, large)
    assert result.test == "LR"
    assert result.df_diff == 2
    assert result.statistic > 0
    assert result.p_value < 0.05


def test_non_nested_models_rejected(quadratic_data):
    a = OLSSpec("y ~ x", name="a").fit(quadratic_data)
    b = OLSSpec("y ~ x_sq", name="b").fit(quadratic_data)
    with pytest.raises(InvalidArgument, match="not nested"):
        nested_model_test(a, b)


def test_same_model_is_not_nested(quadratic_data):
    model = OLSSpec("y ~ x").fit(quadratic_data)
    with pytest.raises(InvalidArgument, match="not nested"):
        nested_model_test(model, model)


def test_different_rows_rejected(quadratic_data):
    small = OLSSpec("y ~ x").fit(quadratic_data.iloc[:100])
    large = OLSSpec("y ~ x + x_sq").fit(quadratic_data)
    with pytest.raises(InvalidArgument, match="different rows"):
        nested_model_test(small, large)


def test_reml_fits_rejected():
    rng = np.random.default_rng(1)
    groups = np.repeat(np.arange(10), 10)
    df = pd.DataFrame({
        "x": rng.normal(size=100),
        "z": rng.normal(size=100),
        "subject": groups,
    })
    df["y"] = df["x"] + rng.normal(size=10)[groups] + rng.normal(size=100)
    small = MixedSpec("y ~ x", group="subject").fit(df)
    large = MixedSpec("y ~ x + z", group="subject").fit(df)
    with pytest.raises(InvalidArgument, match="REML"):
        nested_model_test(small, large)

    small_ml = MixedSpec("y ~ x", group="subject", reml=False).fit(df)
    large_ml = MixedSpec("y ~ x + z", group="subject", reml=False).fit(df)
    assert nested_model_test(small_ml, large_ml).test == "LR"


def test_compare_holdout_rmse():
    df = simulate_nonlinear(n=100, seed=2)
    engine = ResamplingEngine(ResampleConfig(strategy="monte_carlo", n_resamples=10, seed=1))
    result = engine.run_prediction_error(
        df, [OLSSpec("y ~ x", name="linear"), GAMSpec("y ~ s(x)", name="smooth")]
    )
    comparison = compare_holdout_rmse(result)
    assert comparison.best_variant() == "smooth"
    assert len(comparison.pairs) == 1
    pair = comparison.pairs[0]
    assert (pair.variant_a, pair.variant_b) == ("linear", "smooth")
    assert pair.b_wins > 0.5


def test_compare_holdout_needs_prediction_mode():
    df = simulate_nonlinear(n=50, seed=2)
    result = ResamplingEngine(ResampleConfig(n_resamples=3, seed=1)).run_coefficients(
        df, OLSSpec("y ~ x")
    )
    with pytest.raises(InvalidArgument):
        compare_holdout_rmse(result)
