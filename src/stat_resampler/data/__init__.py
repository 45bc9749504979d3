from .loader import load_dataset, clean_names
from .simulate import simulate_linear, simulate_nonlinear, simulate_binary
from .splits import ResampleGenerator, ResampleSplit

__all__ = [
    "load_dataset", "clean_names",
    "simulate_linear", "simulate_nonlinear", "simulate_binary",
    "ResampleGenerator", "ResampleSplit",
]
