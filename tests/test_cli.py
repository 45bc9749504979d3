import pytest
import pandas as pd
from stat_resampler.cli import main
from stat_resampler.data.simulate import simulate_linear, simulate_nonlinear


@pytest.fixture
def linear_csv(tmp_path):
    path = tmp_path / "linear.csv"
    simulate_linear(n=120, seed=0).to_csv(path, index=False)
    return path


def test_simulate_writes_csv(tmp_path, capsys):
    out = tmp_path / "sim" / "nonlinear.csv"
    assert main(["simulate", "nonlinear", "--n", "50", "--seed", "1", "--output", str(out)]) == 0
    df = pd.read_csv(out)
    assert len(df) == 50
    assert "Wrote 50 rows" in capsys.readouterr().out


def test_simulate_preview(capsys):
    assert main(["simulate", "binary", "--n", "20", "--seed", "1"]) == 0
    assert "group" in capsys.readouterr().out


def test_bootstrap_command(linear_csv, tmp_path, capsys):
    out = tmp_path / "boot.csv"
    code = main([
        "bootstrap", str(linear_csv), "--formula", "y ~ x",
        "--n", "50", "--seed", "3", "--output", str(out),
    ])
    assert code == 0
    text = capsys.readouterr().out
    assert "Failed fits [ols]: 0 of 50" in text
    summary = pd.read_csv(out)
    assert summary["term"].tolist() == ["Intercept", "x"]


def test_cv_command(tmp_path, capsys):
    data = tmp_path / "curve.csv"
    simulate_nonlinear(n=100, seed=0).to_csv(data, index=False)
    code = main([
        "cv", str(data), "--outcome", "y", "--predictor", "x",
        "--models", "linear", "smooth", "--n", "5", "--seed", "2",
    ])
    assert code == 0
    text = capsys.readouterr().out
    assert "Paired comparisons" in text
    assert "Lowest held-out RMSE: smooth" in text


def test_bad_formula_field_reports_error(linear_csv, capsys):
    code = main(["bootstrap", str(linear_csv), "--formula", "y ~ weight", "--n", "5"])
    assert code == 1
    assert "Error:" in capsys.readouterr().err


def test_missing_file_reports_error(tmp_path, capsys):
    code = main(["bootstrap", str(tmp_path / "missing.csv"), "--formula", "y ~ x"])
    assert code == 1
    assert "No such dataset" in capsys.readouterr().err


def test_invalid_ci_level_rejected_before_resampling(linear_csv, capsys):
    code = main(["bootstrap", str(linear_csv), "--formula", "y ~ x", "--ci", "1.5"])
    assert code == 1
    captured = capsys.readouterr()
    assert "ci_level" in captured.err
    assert "Bootstrapping" not in captured.out
