"""
Helpers shared by extractors.

An extractor maps fitted sub-models into a
:class:`~medfit.structures.MediationStructure` or
:class:`~medfit.structures.SerialMediationStructure`. The helpers here
build the combined parameter vector and covariance matrix.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Hashable, Sequence, Union

import numpy as np
import pandas as pd
from loguru import logger
from scipy.linalg import block_diag

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from ..structures import MediationStructure, SerialMediationStructure

Extractor = Callable[..., Union["MediationStructure", "SerialMediationStructure"]]

INTERCEPT_NAMES = frozenset({"Intercept", "const", "(Intercept)", "intercept"})


def combine_block_diagonal(*covariances: NDArray) -> NDArray:
    """Stack sub-model covariance matrices along the diagonal.

    Cross-model blocks are zero. Sub-models fitted on the same observations
    generally have correlated estimation error, so the result treats them
    as independent; this is an approximation.
    """
    if not covariances:
        return np.empty((0, 0))
    blocks = [np.atleast_2d(np.asarray(c, dtype=float)) for c in covariances]
    return block_diag(*blocks)


def prefix_names(prefix: str, names: Sequence[Hashable]) -> list[str]:
    """Prefix sub-model parameter names, e.g. ``X`` -> ``m_X``."""
    return [f"{prefix}_{name}" for name in names]


def predictors_without_intercept(names: Sequence[Hashable]) -> tuple[str, ...]:
    return tuple(str(name) for name in names if str(name) not in INTERCEPT_NAMES)


def source_table(data: Any, n_obs: int) -> pd.DataFrame | None:
    """Return ``data`` when it lines up with the fit, otherwise ``None``."""
    if data is None:
        return None
    if not isinstance(data, pd.DataFrame):
        logger.debug(f"Ignoring source data of type {type(data).__name__}")
        return None
    if len(data) != n_obs:
        logger.warning(
            f"Source data has {len(data)} rows but the models used {n_obs} "
            "observations; the table is not attached to the structure"
        )
        return None
    return data


__all__ = [
    "Extractor",
    "INTERCEPT_NAMES",
    "combine_block_diagonal",
    "prefix_names",
    "predictors_without_intercept",
    "source_table",
]
