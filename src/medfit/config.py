"""
Configuration for the bootstrap engine.

Settings are held in a frozen Pydantic model so that every value the engine
uses has been range-checked before a single replicate is drawn.
"""

from __future__ import annotations

import os
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from .exceptions import ConfigurationError


# =============================================================================
# Enums
# =============================================================================


class BootstrapMethod(str, Enum):
    """Resampling regime used by the bootstrap engine."""

    PARAMETRIC = "parametric"
    NONPARAMETRIC = "nonparametric"
    PLUGIN = "plugin"


class ExecutorBackend(str, Enum):
    """Worker pool used when replicates are evaluated in parallel."""

    THREAD = "thread"
    PROCESS = "process"


# =============================================================================
# Bootstrap configuration
# =============================================================================


class BootstrapConfig(BaseModel):
    """Settings for a bootstrap run.

    Parameters
    ----------
    n_boot : int
        Number of replicates to draw.
    ci_level : float
        Confidence level of the percentile interval, strictly in (0, 1).
    parallel : bool
        Evaluate replicates on a worker pool.
    n_workers : int, optional
        Pool size. Defaults to one less than the number of CPUs.
    backend : ExecutorBackend
        ``"thread"`` works with any callable; ``"process"`` requires the
        statistic function to be picklable.
    max_failure_fraction : float
        Largest tolerated share of failed nonparametric replicates.
    min_successful : int
        Fewest successful nonparametric replicates accepted.
    chunks_per_worker : int
        Number of replicate chunks submitted per worker.
    """

    n_boot: int = Field(default=1000, ge=1)
    ci_level: float = Field(default=0.95, gt=0.0, lt=1.0)
    parallel: bool = False
    n_workers: int | None = Field(default=None, ge=1)
    backend: ExecutorBackend = ExecutorBackend.THREAD
    max_failure_fraction: float = Field(default=0.5, ge=0.0, lt=1.0)
    min_successful: int = Field(default=10, ge=1)
    chunks_per_worker: int = Field(default=4, ge=1)

    model_config = {"extra": "forbid", "frozen": True}

    @property
    def alpha(self) -> float:
        return 1.0 - self.ci_level

    def resolved_workers(self) -> int:
        """Number of workers to start when running in parallel."""
        if self.n_workers is not None:
            return self.n_workers
        return max(1, (os.cpu_count() or 1) - 1)

    def with_overrides(self, **overrides: Any) -> BootstrapConfig:
        """Return a copy with ``overrides`` applied and re-validated.

        ``None`` values are ignored so callers can forward optional keywords.
        """
        updates = {k: v for k, v in overrides.items() if v is not None}
        if not updates:
            return self
        return build_config(**{**self.model_dump(), **updates})


def build_config(**kwargs: Any) -> BootstrapConfig:
    """Construct a :class:`BootstrapConfig`, reporting bad values as
    :class:`~medfit.exceptions.ConfigurationError`."""
    try:
        return BootstrapConfig(**kwargs)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid bootstrap configuration: {problems}") from e


__all__ = [
    "BootstrapMethod",
    "ExecutorBackend",
    "BootstrapConfig",
    "build_config",
]
