from .formula import FormulaSpec
from .base import Coefficient, FittedModel, ModelSpec, StatsmodelsModel
from .linear import OLSModel, OLSSpec
from .glm import GLMModel, GLMSpec, LogisticSpec
from .gam import GAMModel, GAMSpec
from .piecewise import PiecewiseModel, PiecewiseSpec, change_point_features
from .mixed import MixedModel, MixedSpec
from .grouped import GroupedFit, fit_by_group

__all__ = [
    "FormulaSpec", "Coefficient", "FittedModel", "ModelSpec", "StatsmodelsModel",
    "OLSModel", "OLSSpec", "GLMModel", "GLMSpec", "LogisticSpec",
    "GAMModel", "GAMSpec", "PiecewiseModel", "PiecewiseSpec", "change_point_features",
    "MixedModel", "MixedSpec", "GroupedFit", "fit_by_group",
]
