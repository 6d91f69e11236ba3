"""
Tests for tidy and glance tables.
"""

import numpy as np
import pytest

from medfit import ConfigurationError, bootstrap, glance, tidy


class TestTidyStructure:
    """tidy() on mediation structures."""

    def test_all_terms(self, simple_structure):
        """All paths and effects are listed."""
        table = tidy(simple_structure)
        assert list(table["term"]) == ["a", "b", "c_prime", "nie", "nde", "te"]
        assert list(table.columns) == ["term", "estimate", "std_error"]

    def test_path_standard_errors(self, simple_structure):
        """Path standard errors come from the covariance diagonal."""
        table = tidy(simple_structure, kind="paths").set_index("term")
        np.testing.assert_allclose(table["std_error"], [0.1, 0.1, 0.1])

    def test_conf_int(self, simple_structure):
        """Wald intervals are added on request."""
        table = tidy(simple_structure, kind="effects", conf_int=True).set_index("term")
        assert (table["conf_low"] < table["estimate"]).all()
        assert (table["estimate"] < table["conf_high"]).all()

    def test_unlabelled_structure(self, worked_structure):
        """Without resolvable labels standard errors are NaN."""
        table = tidy(worked_structure, kind="paths")
        assert table["std_error"].isna().all()

    def test_serial(self, serial_structure):
        """Serial structures list their d path."""
        table = tidy(serial_structure, kind="paths")
        assert list(table["term"]) == ["a", "d", "b", "c_prime"]

    def test_unknown_kind(self, simple_structure):
        """Unknown kinds are rejected."""
        with pytest.raises(ConfigurationError):
            tidy(simple_structure, kind="covariates")


class TestGlance:
    """glance() single-row summaries."""

    def test_simple(self, simple_structure):
        """Simple structures report effects, nobs and convergence."""
        row = glance(simple_structure).iloc[0]
        assert row["nie"] == pytest.approx(0.15)
        assert row["nobs"] == 100
        assert bool(row["converged"]) is True

    def test_serial(self, serial_structure):
        """Serial structures also report the number of mediators."""
        row = glance(serial_structure).iloc[0]
        assert row["n_mediators"] == 2

    def test_bootstrap_outcome(self, worked_structure):
        """Outcomes report estimate, level, method and replicate count."""
        outcome = bootstrap(lambda t: t[0] * t[1], structure=worked_structure, n_boot=100, seed=1)
        row = glance(outcome).iloc[0]
        assert row["method"] == "parametric"
        assert row["n_boot"] == 100
        tidy_row = tidy(outcome).iloc[0]
        assert tidy_row["std_error"] == pytest.approx(outcome.std_error)

    def test_unsupported(self):
        """Other objects are rejected."""
        with pytest.raises(ConfigurationError):
            glance({"nie": 0.1})
