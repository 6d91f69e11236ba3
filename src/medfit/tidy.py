"""
Tidy table export for structures and bootstrap outcomes.

``tidy`` returns one row per term, ``glance`` a single-row model summary.
"""

from __future__ import annotations

from typing import Any

import numpy as np
import pandas as pd
from loguru import logger
from scipy import stats

from .effects import EFFECT_LABELS, effect_standard_errors, path_standard_errors
from .exceptions import ConfigurationError
from .results import BootstrapOutcome
from .structures import MediationStructure, SerialMediationStructure

_TIDY_EFFECTS = ("indirect", "direct", "total")


def _structure_rows(structure: Any, kind: str) -> pd.DataFrame:
    if kind not in ("all", "paths", "effects"):
        raise ConfigurationError(f"kind must be 'all', 'paths' or 'effects', got {kind!r}")

    try:
        path_se = path_standard_errors(structure)
        effect_se = effect_standard_errors(structure)
    except ConfigurationError as e:
        logger.debug(f"Standard errors unavailable: {e}")
        path_se, effect_se = {}, {}

    rows = []
    if kind in ("all", "paths"):
        for term, estimate in structure.paths().items():
            rows.append((term, estimate, path_se.get(term, np.nan)))
    if kind in ("all", "effects"):
        point = structure.effects().to_dict()
        for key in _TIDY_EFFECTS:
            rows.append((EFFECT_LABELS[key], point[key], effect_se.get(key, np.nan)))
    return pd.DataFrame(rows, columns=["term", "estimate", "std_error"])


def tidy(
    obj: MediationStructure | SerialMediationStructure | BootstrapOutcome,
    kind: str = "all",
    conf_int: bool = False,
    conf_level: float = 0.95,
) -> pd.DataFrame:
    """One row per term with estimate and standard error.

    Parameters
    ----------
    obj : structure or BootstrapOutcome
        Object to tabulate.
    kind : {"all", "paths", "effects"}
        Rows to include for structures. Ignored for outcomes.
    conf_int : bool, default=False
        Add Wald ``conf_low``/``conf_high`` columns (structures only;
        outcomes always report their percentile interval).
    conf_level : float, default=0.95
        Level of the Wald interval.
    """
    if isinstance(obj, BootstrapOutcome):
        return pd.DataFrame(
            [
                {
                    "term": "estimate",
                    "estimate": obj.estimate,
                    "std_error": obj.std_error,
                    "conf_low": obj.ci_lower,
                    "conf_high": obj.ci_upper,
                }
            ]
        )
    if not isinstance(obj, (MediationStructure, SerialMediationStructure)):
        raise ConfigurationError(f"tidy() does not support {type(obj).__name__}")

    result = _structure_rows(obj, kind)
    if conf_int:
        if not 0.0 < conf_level < 1.0:
            raise ConfigurationError(
                f"conf_level must be between 0 and 1 (exclusive), got {conf_level}"
            )
        z = stats.norm.ppf(1 - (1 - conf_level) / 2)
        result["conf_low"] = result["estimate"] - z * result["std_error"]
        result["conf_high"] = result["estimate"] + z * result["std_error"]
    return result


def glance(
    obj: MediationStructure | SerialMediationStructure | BootstrapOutcome,
) -> pd.DataFrame:
    """Single-row summary of a structure or bootstrap outcome."""
    if isinstance(obj, BootstrapOutcome):
        return pd.DataFrame(
            [
                {
                    "estimate": obj.estimate,
                    "ci_lower": obj.ci_lower,
                    "ci_upper": obj.ci_upper,
                    "ci_level": obj.ci_level,
                    "method": obj.method.value,
                    "n_boot": obj.n_boot,
                }
            ]
        )
    if not isinstance(obj, (MediationStructure, SerialMediationStructure)):
        raise ConfigurationError(f"glance() does not support {type(obj).__name__}")

    effects = obj.effects()
    row: dict[str, Any] = {
        "nie": effects.indirect,
        "nde": effects.direct,
        "te": effects.total,
        "pm": effects.proportion_mediated,
    }
    if isinstance(obj, SerialMediationStructure):
        row["n_mediators"] = obj.n_mediators
    row["nobs"] = obj.nobs
    row["converged"] = obj.converged
    return pd.DataFrame([row])


__all__ = ["tidy", "glance"]
