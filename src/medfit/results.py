"""
Bootstrap result container.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd

from .config import BootstrapMethod
from .exceptions import ValidationError

if TYPE_CHECKING:
    from numpy.typing import NDArray


@dataclass(frozen=True, eq=False)
class BootstrapOutcome:
    """Point estimate, interval, and replicate distribution of a statistic.

    Attributes
    ----------
    estimate : float
        Statistic evaluated at the point estimates (or on the original table).
    ci_lower, ci_upper : float
        Percentile interval bounds; NaN for the plugin method.
    ci_level : float
        Confidence level; NaN for the plugin method.
    replicate_distribution : NDArray
        Statistic value of each successful replicate, in replicate order.
        Empty for the plugin method.
    n_boot : int
        Number of successful replicates; 0 for the plugin method.
    method : BootstrapMethod
        Resampling regime that produced the outcome.
    n_failed : int
        Nonparametric replicates that raised and were excluded.
    """

    estimate: float
    ci_lower: float
    ci_upper: float
    ci_level: float
    replicate_distribution: NDArray
    n_boot: int
    method: BootstrapMethod
    n_failed: int = 0

    def __post_init__(self):
        try:
            method = BootstrapMethod(self.method)
        except ValueError as e:
            raise ValidationError(
                f"method must be one of {[m.value for m in BootstrapMethod]}, got {self.method!r}"
            ) from e
        object.__setattr__(self, "method", method)

        dist = np.array(self.replicate_distribution, dtype=float).reshape(-1)
        dist.flags.writeable = False
        object.__setattr__(self, "replicate_distribution", dist)

        for name in ("estimate", "ci_lower", "ci_upper", "ci_level"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
                raise ValidationError(f"{name} must be a scalar, got {value!r}")
            object.__setattr__(self, name, float(value))
        if not isinstance(self.n_boot, (int, np.integer)) or isinstance(self.n_boot, bool):
            raise ValidationError(f"n_boot must be an integer, got {self.n_boot!r}")
        object.__setattr__(self, "n_boot", int(self.n_boot))
        if self.n_failed < 0:
            raise ValidationError(f"n_failed must be non-negative, got {self.n_failed}")

        if method == BootstrapMethod.PLUGIN:
            if self.n_boot != 0:
                raise ValidationError(f"Plugin outcomes must have n_boot == 0, got {self.n_boot}")
            if dist.size:
                raise ValidationError("Plugin outcomes must have an empty replicate distribution")
            return

        if self.n_boot < 1:
            raise ValidationError(f"n_boot must be at least 1, got {self.n_boot}")
        if not 0.0 < self.ci_level < 1.0:
            raise ValidationError(
                f"ci_level must be between 0 and 1 (exclusive), got {self.ci_level}"
            )
        if dist.size != self.n_boot:
            raise ValidationError(
                f"Length of replicate_distribution ({dist.size}) must equal n_boot ({self.n_boot})"
            )
        if (
            not math.isnan(self.ci_lower)
            and not math.isnan(self.ci_upper)
            and self.ci_lower > self.ci_upper
        ):
            raise ValidationError(
                f"ci_lower ({self.ci_lower}) must not exceed ci_upper ({self.ci_upper})"
            )

    @property
    def std_error(self) -> float:
        """Standard deviation of the replicate distribution."""
        if self.n_boot < 2:
            return float("nan")
        return float(np.std(self.replicate_distribution, ddof=1))

    def summary(self) -> pd.DataFrame:
        """One-row summary table."""
        return pd.DataFrame(
            [
                {
                    "method": self.method.value,
                    "estimate": self.estimate,
                    "std_error": self.std_error,
                    "ci_lower": self.ci_lower,
                    "ci_upper": self.ci_upper,
                    "ci_level": self.ci_level,
                    "n_boot": self.n_boot,
                    "n_failed": self.n_failed,
                }
            ]
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "method": self.method.value,
            "estimate": self.estimate,
            "ci_lower": self.ci_lower,
            "ci_upper": self.ci_upper,
            "ci_level": self.ci_level,
            "n_boot": self.n_boot,
            "n_failed": self.n_failed,
            "std_error": self.std_error,
        }


__all__ = ["BootstrapOutcome"]
