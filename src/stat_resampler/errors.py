class StatResamplerError(Exception):
    """Base class for all errors raised by stat_resampler."""


class InvalidArgument(StatResamplerError, ValueError):
    """Malformed resampling, model or aggregation parameters."""


class FitFailure(StatResamplerError):
    """A single model fit did not converge or had a degenerate design.

    Raised by model specs and caught per resample by the engine, so one bad
    resample never aborts a whole evaluation run.
    """

    def __init__(self, message: str, variant: str | None = None):
        super().__init__(message)
        self.variant = variant


class AllResamplesFailure(StatResamplerError):
    """Every resample failed to fit for at least one model variant."""

    def __init__(self, variant: str, n_failed: int, reasons: list[str] | None = None):
        self.variant = variant
        self.n_failed = n_failed
        self.reasons = reasons or []
        sample = f" (first error: {self.reasons[0]})" if self.reasons else ""
        super().__init__(
            f"All {n_failed} resamples failed for variant '{variant}'{sample}"
        )


class AggregationError(StatResamplerError, KeyError):
    """A requested summary cannot be computed from the successful fits."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ""
