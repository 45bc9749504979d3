"""Resampling evaluation of regression models: bootstrap and cross-validation."""

from .config import AggregateConfig, AppConfig, ResampleConfig, TrackingConfig
from .errors import (
    AggregationError, AllResamplesFailure, FitFailure, InvalidArgument, StatResamplerError,
)

__version__ = "0.1.0"

__all__ = [
    "AggregateConfig", "AppConfig", "ResampleConfig", "TrackingConfig",
    "AggregationError", "AllResamplesFailure", "FitFailure", "InvalidArgument",
    "StatResamplerError",
]
