import argparse
import logging
import sys
from pathlib import Path


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        description="Bootstrap and cross-validation for regression models",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug)")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Simulate command
    sim_parser = subparsers.add_parser("simulate", help="Write a simulated example dataset")
    sim_parser.add_argument("kind", choices=["linear", "nonconstant", "nonlinear", "binary"])
    sim_parser.add_argument("--n", type=int, default=None, help="Number of rows")
    sim_parser.add_argument("--seed", type=int, default=None)
    sim_parser.add_argument("--output", type=Path, help="CSV path (prints a preview if omitted)")

    # Bootstrap command
    boot_parser = subparsers.add_parser("bootstrap", help="Bootstrap coefficient distributions")
    boot_parser.add_argument("data", type=Path, help="Delimited input file")
    boot_parser.add_argument("--formula", required=True, help='e.g. "y ~ x + group"')
    boot_parser.add_argument("--categorical", nargs="*", default=[], help="Fields to treat as categorical")
    boot_parser.add_argument("--model", choices=["ols", "logistic", "poisson"], default="ols")
    boot_parser.add_argument("--n", type=int, default=1000, help="Number of resamples")
    boot_parser.add_argument("--seed", type=int, default=None)
    boot_parser.add_argument("--jobs", type=int, default=1, help="Parallel workers (-1 for all cores)")
    boot_parser.add_argument("--ci", type=float, default=0.95, help="Confidence level")
    boot_parser.add_argument("--output", type=Path, help="Write summary CSV here")
    boot_parser.add_argument("--track", action="store_true", help="Log the run to MLflow")

    # Cross-validation command
    cv_parser = subparsers.add_parser("cv", help="Compare models by held-out RMSE")
    cv_parser.add_argument("data", type=Path, help="Delimited input file")
    cv_parser.add_argument("--outcome", required=True)
    cv_parser.add_argument("--predictor", required=True)
    cv_parser.add_argument(
        "--models", nargs="+", choices=["linear", "smooth", "flexible"],
        default=["linear", "smooth", "flexible"],
    )
    cv_parser.add_argument("--strategy", choices=["monte_carlo", "kfold"], default="monte_carlo")
    cv_parser.add_argument("--n", type=int, default=100, help="Resamples (folds for kfold)")
    cv_parser.add_argument("--train-fraction", type=float, default=0.8)
    cv_parser.add_argument("--seed", type=int, default=None)
    cv_parser.add_argument("--jobs", type=int, default=1)
    cv_parser.add_argument("--output", type=Path, help="Write summary CSV here")
    cv_parser.add_argument("--track", action="store_true", help="Log the run to MLflow")

    args = parser.parse_args(argv)

    level = [logging.WARNING, logging.INFO, logging.DEBUG][min(args.verbose, 2)]
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    from stat_resampler.errors import StatResamplerError

    try:
        if args.command == "simulate":
            run_simulate(args)
        elif args.command == "bootstrap":
            run_bootstrap(args)
        elif args.command == "cv":
            run_cv(args)
        else:
            parser.print_help()
    except (StatResamplerError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


def run_simulate(args):
    """Write a simulated dataset."""
    from stat_resampler.data import simulate_binary, simulate_linear, simulate_nonlinear

    kwargs = {"seed": args.seed}
    if args.n is not None:
        kwargs["n"] = args.n

    if args.kind == "linear":
        df = simulate_linear(**kwargs)
    elif args.kind == "nonconstant":
        df = simulate_linear(nonconstant=True, **kwargs)
    elif args.kind == "nonlinear":
        df = simulate_nonlinear(**kwargs)
    else:
        df = simulate_binary(**kwargs)

    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(args.output, index=False)
        print(f"Wrote {len(df)} rows to {args.output}")
    else:
        print(df.head(10).to_string(index=False))


def _report(result, args, ci_level: float = 0.95):
    from stat_resampler.config import AggregateConfig, TrackingConfig

    aggregate = AggregateConfig(ci_level=ci_level)
    tracking = TrackingConfig(enabled=args.track)

    print(result.summary(aggregate.ci_level))
    if args.output:
        path = result.to_csv(args.output, aggregate.ci_level)
        print(f"\nSaved summary to {path}")
    if tracking.enabled:
        from stat_resampler.tracking import ResamplingTracker
        run_id = ResamplingTracker(tracking).log_result(
            result, run_name=args.command, ci_level=aggregate.ci_level
        )
        print(f"Logged MLflow run {run_id}")


def run_bootstrap(args):
    """Bootstrap the coefficients of one model."""
    from stat_resampler.config import AggregateConfig, ResampleConfig
    from stat_resampler.data import load_dataset
    from stat_resampler.evaluation import ResamplingEngine
    from stat_resampler.models import FormulaSpec, GLMSpec, LogisticSpec, OLSSpec

    aggregate = AggregateConfig(ci_level=args.ci)
    formula = FormulaSpec.parse(args.formula, categorical=tuple(args.categorical))
    df = load_dataset(args.data, columns=formula.fields, dropna=True)
    print(f"Loaded {len(df)} rows from {args.data}")

    if args.model == "ols":
        spec = OLSSpec(formula)
    elif args.model == "logistic":
        spec = LogisticSpec(formula)
    else:
        spec = GLMSpec(formula, family="poisson", name="poisson")

    engine = ResamplingEngine(ResampleConfig(
        strategy="bootstrap", n_resamples=args.n, seed=args.seed, n_jobs=args.jobs,
    ))
    print(f"Bootstrapping {spec.name}: {formula} ({args.n} resamples)...\n")
    result = engine.run_coefficients(df, spec)
    _report(result, args, aggregate.ci_level)


def run_cv(args):
    """Cross-validate linear and smooth models of one predictor."""
    from stat_resampler.config import ResampleConfig
    from stat_resampler.data import load_dataset
    from stat_resampler.evaluation import ResamplingEngine, compare_holdout_rmse
    from stat_resampler.models import FormulaSpec, GAMSpec, OLSSpec

    df = load_dataset(args.data, columns=[args.outcome, args.predictor], dropna=True)
    print(f"Loaded {len(df)} rows from {args.data}")

    linear = FormulaSpec(outcome=args.outcome, predictors=(args.predictor,))
    smooth = FormulaSpec(outcome=args.outcome, smooth=(args.predictor,))
    presets = {
        "linear": lambda: OLSSpec(linear, name="linear"),
        "smooth": lambda: GAMSpec(smooth, df=6, name="smooth"),
        "flexible": lambda: GAMSpec(smooth, df=30, alpha=0.0, name="flexible"),
    }
    variants = [presets[name]() for name in args.models]

    engine = ResamplingEngine(ResampleConfig(
        strategy=args.strategy, n_resamples=args.n, train_fraction=args.train_fraction,
        seed=args.seed, n_jobs=args.jobs,
    ))
    print(f"Cross-validating {', '.join(args.models)} ({args.strategy}, {args.n} resamples)...\n")
    result = engine.run_prediction_error(df, variants)
    _report(result, args)

    comparison = compare_holdout_rmse(result)
    if comparison.pairs:
        print("\nPaired comparisons:")
        for pair in comparison.pairs:
            print(f"  {pair.summary()}")
    print(f"\nLowest held-out RMSE: {comparison.best_variant()}")


if __name__ == "__main__":
    sys.exit(main())
