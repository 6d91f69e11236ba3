"""
medfit: fitted mediation structures and bootstrap inference.

Represents the path coefficients and covariance of a mediator/outcome model
pair, computes mediation effects, and bootstraps arbitrary scalar statistics
under parametric, nonparametric, or plugin regimes.

Examples
--------
>>> import numpy as np
>>> from medfit import MediationStructure, bootstrap, effects
>>> structure = MediationStructure(
...     a_path=0.5, b_path=0.3, c_prime=0.2,
...     estimates=[0.5, 0.3, 0.2], covariance=np.diag([0.01] * 3),
...     treatment_name="X", mediator_name="M", outcome_name="Y", n_obs=200,
... )
>>> effects(structure).indirect
0.15
>>> outcome = bootstrap(lambda t: t[0] * t[1], "parametric", structure=structure, seed=7)
"""

from .analysis import MediationAnalysis, fit_mediation, med
from .bootstrap import BootstrapEngine, bootstrap
from .config import BootstrapConfig, BootstrapMethod, ExecutorBackend
from .effects import (
    EffectCalculator,
    EffectStatistic,
    MediationEffects,
    effect_statistic,
    effects,
)
from .exceptions import (
    BootstrapFailureWarning,
    ConfigurationError,
    DegenerateEffectWarning,
    ExtractorNotFoundError,
    InsufficientReplicatesError,
    MedfitError,
    ResamplingFailure,
    ValidationError,
)
from .extractors import (
    ExtractorRegistry,
    combine_block_diagonal,
    register_builtin_extractors,
    statsmodels_available,
)
from .results import BootstrapOutcome
from .structures import MediationStructure, ParametricModel, SerialMediationStructure
from .tidy import glance, tidy

__version__ = "0.1.0"

__all__ = [
    # Structures
    "MediationStructure",
    "SerialMediationStructure",
    "ParametricModel",
    # Effects
    "EffectCalculator",
    "EffectStatistic",
    "MediationEffects",
    "effect_statistic",
    "effects",
    # Bootstrap
    "BootstrapConfig",
    "BootstrapEngine",
    "BootstrapMethod",
    "BootstrapOutcome",
    "ExecutorBackend",
    "bootstrap",
    # Extractors
    "ExtractorRegistry",
    "combine_block_diagonal",
    "register_builtin_extractors",
    "statsmodels_available",
    # Analysis and export
    "MediationAnalysis",
    "fit_mediation",
    "med",
    "tidy",
    "glance",
    # Errors
    "MedfitError",
    "ValidationError",
    "ConfigurationError",
    "ExtractorNotFoundError",
    "InsufficientReplicatesError",
    "ResamplingFailure",
    "DegenerateEffectWarning",
    "BootstrapFailureWarning",
    # Version
    "__version__",
]
