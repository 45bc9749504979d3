import pytest
import pandas as pd
import numpy as np
from stat_resampler.data.simulate import simulate_binary, simulate_linear, simulate_nonlinear
from stat_resampler.errors import FitFailure, InvalidArgument
from stat_resampler.evaluation.diagnostics import rmse
from stat_resampler.models import (
    Coefficient, FittedModel, FormulaSpec, GAMSpec, GLMSpec, LogisticSpec, MixedSpec,
    ModelSpec, OLSModel, OLSSpec, PiecewiseSpec, change_point_features,
)


def test_base_classes_are_abstract():
    with pytest.raises(TypeError):
        FittedModel("test", FormulaSpec(outcome="y"), None)
    with pytest.raises(TypeError):
        ModelSpec("y ~ x")


@pytest.fixture
def linear_data():
    return simulate_linear(n=250, seed=1)


@pytest.fixture
def categorical_data():
    rng = np.random.default_rng(3)
    n = 300
    group = rng.choice(["a", "b", "c"], size=n, p=[0.5, 0.3, 0.2])
    x = rng.normal(size=n)
    shift = pd.Series(group).map({"a": 0.0, "b": 2.0, "c": -1.0}).to_numpy()
    y = 1.0 + 0.5 * x + shift + rng.normal(scale=0.5, size=n)
    return pd.DataFrame({"x": x, "group": group, "y": y})


def test_ols_recovers_slope(linear_data):
    model = OLSSpec("y ~ x").fit(linear_data)
    assert isinstance(model, OLSModel)
    assert model.is_fitted
    names = [c.name for c in model.coefficients()]
    assert names == ["Intercept", "x"]
    slope = model.coefficient("x")
    assert isinstance(slope, Coefficient)
    assert abs(slope.estimate - 3.0) < 0.3
    assert slope.std_error > 0
    assert slope.p_value < 1e-6


def test_ols_predict_and_predict_record(linear_data):
    model = OLSSpec("y ~ x").fit(linear_data)
    preds = model.predict(linear_data)
    assert preds.shape == (len(linear_data),)
    intercept = model.coefficient("Intercept").estimate
    slope = model.coefficient("x").estimate
    assert model.predict_record({"x": 2.0}) == pytest.approx(intercept + 2.0 * slope)


def test_ols_summary_statistics(linear_data):
    stats = OLSSpec("y ~ x").fit(linear_data).summary_statistics()
    assert stats["nobs"] == 250
    assert 0.8 < stats["r_squared"] <= 1.0
    assert stats["df_resid"] == 248
    assert np.isfinite(stats["aic"])


def test_categorical_expands_to_k_minus_one_indicators(categorical_data):
    model = OLSSpec("y ~ x + group").fit(categorical_data)
    names = [c.name for c in model.coefficients()]
    indicators = [n for n in names if n.startswith("group[")]
    assert len(indicators) == 2
    # "a" is most frequent and absorbed into the intercept
    assert sorted(indicators) == ["group[T.b]", "group[T.c]"]
    assert model.coefficient("group[T.b]").estimate == pytest.approx(2.0, abs=0.3)


def test_changing_reference_keeps_predictions(categorical_data):
    formula = FormulaSpec.parse("y ~ x + group")
    default = OLSSpec(formula).fit(categorical_data)
    other = OLSSpec(formula.with_reference("group", "c")).fit(categorical_data)

    other_names = [c.name for c in other.coefficients()]
    assert "group[T.a]" in other_names and "group[T.b]" in other_names
    assert default.coefficient("Intercept").estimate != pytest.approx(
        other.coefficient("Intercept").estimate
    )
    np.testing.assert_allclose(
        default.predict(categorical_data), other.predict(categorical_data), atol=1e-8
    )


def test_interaction_terms(categorical_data):
    model = OLSSpec("y ~ x + group + x:group").fit(categorical_data)
    names = [c.name for c in model.coefficients()]
    assert "x:group[T.b]" in names
    assert "x:group[T.c]" in names


def test_collinear_predictors_fail(linear_data):
    df = linear_data.assign(x2=2 * linear_data["x"])
    with pytest.raises(FitFailure, match="Rank-deficient"):
        OLSSpec("y ~ x + x2").fit(df)


def test_too_few_rows_fail():
    df = pd.DataFrame({"y": [1.0, 2.0], "x": [0.0, 1.0]})
    with pytest.raises(FitFailure, match="cannot identify"):
        OLSSpec("y ~ x").fit(df)


def test_unobserved_category_in_sample_fails(categorical_data):
    spec = OLSSpec("y ~ x + group").resolve(categorical_data)
    only_a_b = categorical_data[categorical_data["group"] != "c"].reset_index(drop=True)
    with pytest.raises(FitFailure):
        spec.fit(only_a_b)


def test_ols_rejects_smooth_terms(linear_data):
    with pytest.raises(InvalidArgument):
        OLSSpec("y ~ s(x)").fit(linear_data)


def test_logistic_regression_odds_ratios():
    df = simulate_binary(n=800, seed=5)
    model = LogisticSpec("y ~ x + group").fit(df)
    assert model.coefficient("x").estimate == pytest.approx(1.2, abs=0.35)
    preds = model.predict(df)
    assert ((preds > 0) & (preds < 1)).all()

    tidy = model.tidy(exponentiate=True)
    assert list(tidy.columns) == [
        "term", "estimate", "std_error", "statistic", "p_value", "conf_low", "conf_high",
    ]
    assert (tidy["estimate"] > 0).all()
    assert (tidy["conf_low"] < tidy["estimate"]).all()
    assert (tidy["estimate"] < tidy["conf_high"]).all()


def test_glm_linear_predictor_scale():
    df = simulate_binary(n=400, seed=2)
    model = LogisticSpec("y ~ x").fit(df)
    eta = model.predict_linear(df)
    np.testing.assert_allclose(1 / (1 + np.exp(-eta)), model.predict(df), rtol=1e-8)


def test_perfect_separation_fails():
    x = np.linspace(-2, 2, 40)
    df = pd.DataFrame({"x": x, "y": (x > 0).astype(int)})
    with pytest.raises(FitFailure):
        LogisticSpec("y ~ x").fit(df)


def test_constant_binary_outcome_fails():
    df = pd.DataFrame({"x": np.arange(10.0), "y": np.zeros(10, dtype=int)})
    with pytest.raises(FitFailure, match="constant"):
        LogisticSpec("y ~ x").fit(df)


def test_poisson_glm():
    rng = np.random.default_rng(0)
    x = rng.uniform(0, 2, size=300)
    df = pd.DataFrame({"x": x, "count": rng.poisson(np.exp(0.3 + 0.8 * x))})
    model = GLMSpec("count ~ x", family="poisson").fit(df)
    assert model.name == "glm_poisson"
    assert model.coefficient("x").estimate == pytest.approx(0.8, abs=0.2)
    stats = model.summary_statistics()
    assert stats["deviance"] < stats["null_deviance"]


def test_unknown_family_rejected():
    with pytest.raises(InvalidArgument, match="Unknown family"):
        GLMSpec("y ~ x", family="tweedie")


def test_gam_beats_linear_on_curve():
    df = simulate_nonlinear(n=200, seed=4)
    linear = OLSSpec("y ~ x").fit(df)
    smooth = GAMSpec("y ~ s(x)", df=6).fit(df)
    assert rmse(smooth, df) < rmse(linear, df)
    assert rmse(smooth, df) < 0.4
    assert smooth.summary_statistics()["edf"] > 1


def test_gam_predicts_held_out_rows():
    df = simulate_nonlinear(n=150, seed=8)
    spec = GAMSpec("y ~ s(x)", df=8).resolve(df)
    model = spec.fit(df.iloc[:100].reset_index(drop=True))
    preds = model.predict(df.iloc[100:].reset_index(drop=True))
    assert preds.shape == (50,)
    assert np.isfinite(preds).all()


def test_gam_requires_smooth_term():
    with pytest.raises(InvalidArgument, match="smooth"):
        GAMSpec("y ~ x")


def test_change_point_features():
    df = pd.DataFrame({"weight": [5.0, 7.0, 9.5]})
    out, names = change_point_features(df, "weight", [7])
    assert names == ["weight_cp7"]
    assert out["weight_cp7"].tolist() == [0.0, 0.0, 2.5]
    assert "weight_cp7" not in df.columns


def test_piecewise_recovers_slope_change():
    rng = np.random.default_rng(11)
    w = rng.uniform(2, 12, size=300)
    y = 1.0 + 0.5 * w + 1.5 * np.maximum(w - 7, 0) + rng.normal(scale=0.3, size=300)
    df = pd.DataFrame({"weight": w, "armc": y})
    model = PiecewiseSpec("armc ~ weight", field="weight", change_points=[7]).fit(df)
    assert model.coefficient("weight").estimate == pytest.approx(0.5, abs=0.1)
    assert model.coefficient("weight_cp7").estimate == pytest.approx(1.5, abs=0.15)
    # predicts from the raw field
    assert model.predict_record({"weight": 10.0}) == pytest.approx(1 + 5 + 4.5, abs=0.3)


def test_mixed_model_fixed_effects():
    rng = np.random.default_rng(21)
    groups = np.repeat(np.arange(20), 15)
    intercepts = rng.normal(scale=2.0, size=20)[groups]
    x = rng.normal(size=len(groups))
    y = 1.0 + 2.0 * x + intercepts + rng.normal(scale=0.5, size=len(groups))
    df = pd.DataFrame({"x": x, "y": y, "subject": groups})

    model = MixedSpec("y ~ x", group="subject").fit(df)
    names = [c.name for c in model.coefficients()]
    assert names == ["Intercept", "x"]
    assert model.coefficient("x").estimate == pytest.approx(2.0, abs=0.15)
    stats = model.summary_statistics()
    assert stats["n_groups"] == 20
    assert stats["group_variance"] > 1.0
    assert len(model.random_effects()) == 20
    assert model.predict(df).shape == (len(df),)


def test_save_and_load(tmp_path, linear_data):
    model = OLSSpec("y ~ x", name="slope").fit(linear_data)
    path = tmp_path / "models" / "slope.joblib"
    model.save(path)
    loaded = FittedModel.load(path)
    assert loaded.name == "slope"
    np.testing.assert_allclose(loaded.predict(linear_data), model.predict(linear_data))
