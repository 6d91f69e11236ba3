"""Exception and warning types raised by medfit.

Structures and outcomes raise :class:`ValidationError` when an invariant
fails at construction. The bootstrap engine raises :class:`ConfigurationError`
for missing inputs or numeric preconditions and
:class:`InsufficientReplicatesError` when too many nonparametric replicates
fail. Individual replicate failures are recorded as :class:`ResamplingFailure`
instances and never leave the engine.
"""

from __future__ import annotations


class MedfitError(Exception):
    """Base class for all medfit errors."""


class ValidationError(MedfitError, ValueError):
    """A data-model invariant was violated at construction."""


class ConfigurationError(MedfitError, ValueError):
    """A method was called without its required input or with bad settings."""


class ExtractorNotFoundError(ConfigurationError, KeyError):
    """No extractor is registered under the requested engine name."""

    def __str__(self) -> str:
        # KeyError would otherwise quote the message
        return str(self.args[0]) if self.args else ""


class InsufficientReplicatesError(MedfitError):
    """Too many bootstrap replicates failed to trust the distribution.

    Parameters
    ----------
    n_requested : int
        Number of replicates the run attempted.
    n_successful : int
        Number of replicates whose statistic could be evaluated.
    """

    def __init__(self, n_requested: int, n_successful: int, reason: str = ""):
        self.n_requested = n_requested
        self.n_successful = n_successful
        self.n_failed = n_requested - n_successful
        message = (
            f"Too many bootstrap replicates failed: {self.n_successful} of "
            f"{self.n_requested} succeeded ({self.n_failed} failed)"
        )
        if reason:
            message = f"{message}; {reason}"
        super().__init__(message)

    def __reduce__(self):
        return (type(self), (self.n_requested, self.n_successful))


class ResamplingFailure(MedfitError):
    """Record of a statistic that raised inside one nonparametric replicate.

    Parameters
    ----------
    replicate : int
        Zero-based replicate index.
    message : str
        Description of the underlying exception.
    """

    def __init__(self, replicate: int, message: str):
        self.replicate = replicate
        self.message = message
        super().__init__(replicate, message)

    def __str__(self) -> str:
        return f"Replicate {self.replicate} failed: {self.message}"


class DegenerateEffectWarning(UserWarning):
    """Proportion mediated is undefined because the total effect is ~0."""


class BootstrapFailureWarning(UserWarning):
    """Some nonparametric replicates failed and were excluded."""


__all__ = [
    "MedfitError",
    "ValidationError",
    "ConfigurationError",
    "ExtractorNotFoundError",
    "InsufficientReplicatesError",
    "ResamplingFailure",
    "DegenerateEffectWarning",
    "BootstrapFailureWarning",
]
