"""
Tests for the extractor registry and the statsmodels extractor.
"""

import numpy as np
import pandas as pd
import pytest

from medfit import (
    ConfigurationError,
    ExtractorNotFoundError,
    ExtractorRegistry,
    MediationStructure,
    SerialMediationStructure,
    combine_block_diagonal,
    register_builtin_extractors,
    statsmodels_available,
)

HAS_STATSMODELS = statsmodels_available()
needs_statsmodels = pytest.mark.skipif(not HAS_STATSMODELS, reason="statsmodels not installed")


class TestBlockDiagonal:
    """Combining sub-model covariances."""

    def test_zero_cross_blocks(self):
        """Off-diagonal blocks are zero."""
        combined = combine_block_diagonal(np.eye(2) * 2.0, np.full((3, 3), 0.5))
        assert combined.shape == (5, 5)
        np.testing.assert_array_equal(combined[:2, 2:], 0.0)
        np.testing.assert_array_equal(combined[2:, 2:], 0.5)

    def test_many_blocks(self):
        """Any number of blocks can be combined."""
        combined = combine_block_diagonal(np.eye(1), np.eye(2), np.eye(3))
        np.testing.assert_array_equal(combined, np.eye(6))


class TestExtractorRegistry:
    """Explicit registration of extractor strategies."""

    def test_starts_empty(self):
        """A new registry has no extractors."""
        registry = ExtractorRegistry()
        assert len(registry) == 0
        assert registry.names() == []

    def test_register_and_extract(self, simple_structure):
        """Registered extractors are looked up by name."""
        registry = ExtractorRegistry()
        registry.register("fake", lambda *args, **kwargs: simple_structure)
        assert "fake" in registry
        assert registry.extract("fake", None, None) is simple_structure

    def test_duplicate_registration(self):
        """Registering a name twice needs replace=True."""
        registry = ExtractorRegistry()
        registry.register("fake", lambda: None)
        with pytest.raises(ConfigurationError, match="already registered"):
            registry.register("fake", lambda: None)
        registry.register("fake", print, replace=True)
        assert registry.get("fake") is print

    def test_missing_extractor(self):
        """Unknown engines raise and list what is available."""
        registry = ExtractorRegistry()
        registry.register("lm", lambda: None)
        with pytest.raises(ExtractorNotFoundError, match="available: lm"):
            registry.get("lavaan")

    def test_missing_is_key_error(self):
        """The lookup error is also a KeyError."""
        with pytest.raises(KeyError):
            ExtractorRegistry().get("lm")

    def test_unregister(self):
        """Extractors can be removed."""
        registry = ExtractorRegistry()
        registry.register("lm", lambda: None)
        registry.unregister("lm")
        assert "lm" not in registry

    def test_rejects_non_callable(self):
        """Extractors must be callable."""
        with pytest.raises(ConfigurationError, match="callable"):
            ExtractorRegistry().register("lm", "not a function")

    def test_import_registers_nothing(self):
        """Importing medfit does not populate registries."""
        import medfit.extractors  # noqa: F401

        assert ExtractorRegistry().names() == []

    def test_builtin_without_statsmodels(self, monkeypatch):
        """Missing statsmodels is reported as a configuration error."""
        from medfit.extractors import registry as registry_module

        monkeypatch.setattr(registry_module, "statsmodels_available", lambda: False)
        with pytest.raises(ConfigurationError, match="statsmodels is required"):
            registry_module.register_builtin_extractors(ExtractorRegistry())

    @needs_statsmodels
    def test_register_builtin(self):
        """The built-in hook registers both statsmodels extractors."""
        registry = ExtractorRegistry()
        names = register_builtin_extractors(registry)
        assert names == ["statsmodels", "statsmodels-serial"]
        assert registry.names() == ["statsmodels", "statsmodels-serial"]


@needs_statsmodels
class TestStatsmodelsExtractor:
    """Extraction from statsmodels fits."""

    def _fits(self, data):
        import statsmodels.formula.api as smf

        fit_m = smf.ols("M ~ X + C", data=data).fit()
        fit_y = smf.ols("Y ~ X + M + C", data=data).fit()
        return fit_m, fit_y

    def test_simple_extraction(self, mediation_data):
        """Paths, names and covariance are combined from both fits."""
        from medfit.extractors.statsmodels_glm import extract_statsmodels

        fit_m, fit_y = self._fits(mediation_data)
        structure = extract_statsmodels(fit_m, fit_y, "X", "M")

        assert isinstance(structure, MediationStructure)
        assert structure.a_path == pytest.approx(fit_m.params["X"])
        assert structure.b_path == pytest.approx(fit_y.params["M"])
        assert structure.c_prime == pytest.approx(fit_y.params["X"])
        assert structure.parameter_names == (
            "m_Intercept",
            "m_X",
            "m_C",
            "y_Intercept",
            "y_X",
            "y_M",
            "y_C",
        )
        assert structure.outcome_name == "Y"
        assert structure.mediator_predictors == ("X", "C")
        assert structure.outcome_predictors == ("X", "M", "C")
        assert structure.n_obs == 200
        assert structure.source_label == "statsmodels.OLS"
        assert structure.converged is True
        assert structure.sigma_outcome == pytest.approx(np.sqrt(fit_y.scale))

    def test_block_diagonal_covariance(self, mediation_data):
        """Cross-model covariance is zero."""
        from medfit.extractors.statsmodels_glm import extract_statsmodels

        fit_m, fit_y = self._fits(mediation_data)
        structure = extract_statsmodels(fit_m, fit_y, "X", "M")
        np.testing.assert_array_equal(structure.covariance[:3, 3:], 0.0)
        np.testing.assert_allclose(structure.covariance[:3, :3], fit_m.cov_params().to_numpy())

    def test_source_data_attached(self, mediation_data):
        """The formula data frame becomes the source table."""
        from medfit.extractors.statsmodels_glm import extract_statsmodels

        fit_m, fit_y = self._fits(mediation_data)
        structure = extract_statsmodels(fit_m, fit_y, "X", "M")
        assert structure.source_data is not None
        assert len(structure.source_data) == structure.n_obs

    def test_estimates_recover_truth(self, mediation_data):
        """Estimated paths are close to the simulated ones."""
        from medfit.extractors.statsmodels_glm import extract_statsmodels

        structure = extract_statsmodels(*self._fits(mediation_data), "X", "M")
        assert structure.a_path == pytest.approx(0.5, abs=0.2)
        assert structure.b_path == pytest.approx(0.4, abs=0.2)

    def test_missing_treatment(self, mediation_data):
        """An absent treatment coefficient is a configuration error."""
        from medfit.extractors.statsmodels_glm import extract_statsmodels

        fit_m, fit_y = self._fits(mediation_data)
        with pytest.raises(ConfigurationError, match="'Z' not found"):
            extract_statsmodels(fit_m, fit_y, "Z", "M")

    def test_missing_direct_path(self, mediation_data):
        """Without a direct path c_prime is fixed at zero with a warning."""
        import statsmodels.formula.api as smf

        from medfit.extractors.statsmodels_glm import extract_statsmodels

        fit_m = smf.ols("M ~ X", data=mediation_data).fit()
        fit_y = smf.ols("Y ~ M", data=mediation_data).fit()
        with pytest.warns(UserWarning, match="fixed at 0"):
            structure = extract_statsmodels(fit_m, fit_y, "X", "M")
        assert structure.c_prime == 0.0
        assert structure.parameter_names[-1] == "y_X"
        assert structure.covariance[-1, -1] == 0.0

    def test_glm_binomial(self, mediation_data):
        """Non-Gaussian outcome models carry no residual spread."""
        import statsmodels.api as sm
        import statsmodels.formula.api as smf

        from medfit.extractors.statsmodels_glm import extract_statsmodels

        data = mediation_data.assign(Yb=(mediation_data["Y"] > 0).astype(int))
        fit_m = smf.glm("M ~ X", data=data, family=sm.families.Gaussian()).fit()
        fit_y = smf.glm("Yb ~ X + M", data=data, family=sm.families.Binomial()).fit()
        structure = extract_statsmodels(fit_m, fit_y, "X", "M")
        assert structure.sigma_outcome is None
        assert structure.sigma_mediator == pytest.approx(np.sqrt(fit_m.scale))
        assert structure.source_label == "statsmodels.GLM"
        assert structure.outcome_name == "Yb"

    def test_array_interface(self, mediation_data):
        """Fits made with arrays use the model's exog names."""
        import statsmodels.api as sm

        from medfit.extractors.statsmodels_glm import extract_statsmodels

        X = sm.add_constant(mediation_data[["X"]].to_numpy())
        fit_m = sm.OLS(mediation_data["M"].to_numpy(), X).fit()
        XM = sm.add_constant(mediation_data[["X", "M"]].to_numpy())
        fit_y = sm.OLS(mediation_data["Y"].to_numpy(), XM).fit()
        structure = extract_statsmodels(fit_m, fit_y, "x1", "x2", outcome="Y")
        assert structure.parameter_names == ("m_const", "m_x1", "y_const", "y_x1", "y_x2")
        assert structure.mediator_predictors == ("x1",)

    def test_rejects_non_results(self):
        """Objects that are not fitted results are rejected."""
        from medfit.extractors.statsmodels_glm import extract_statsmodels

        with pytest.raises(ConfigurationError, match="statsmodels results"):
            extract_statsmodels(object(), object(), "X", "M")

    def test_serial_extraction(self, serial_data):
        """Serial chains combine one fit per stage."""
        import statsmodels.formula.api as smf

        from medfit.extractors.statsmodels_glm import extract_statsmodels_serial

        fit_m1 = smf.ols("M1 ~ X", data=serial_data).fit()
        fit_m2 = smf.ols("M2 ~ X + M1", data=serial_data).fit()
        fit_y = smf.ols("Y ~ X + M1 + M2", data=serial_data).fit()
        structure = extract_statsmodels_serial([fit_m1, fit_m2], fit_y, "X", ["M1", "M2"])

        assert isinstance(structure, SerialMediationStructure)
        assert structure.d_path == pytest.approx((fit_m2.params["M1"],))
        assert structure.b_path == pytest.approx(fit_y.params["M2"])
        assert structure.mediator_predictors == (("X",), ("X", "M1"))
        assert structure.resolve_path_labels()["d"] == "m2_M1"
        assert structure.covariance.shape == (2 + 3 + 4, 2 + 3 + 4)

    def test_serial_model_count(self, serial_data):
        """One mediator model per mediator is required."""
        import statsmodels.formula.api as smf

        from medfit.extractors.statsmodels_glm import extract_statsmodels_serial

        fit = smf.ols("M1 ~ X", data=serial_data).fit()
        with pytest.raises(ConfigurationError, match="mediator models"):
            extract_statsmodels_serial([fit], fit, "X", ["M1", "M2"])

    def test_through_registry(self, mediation_data):
        """The registry dispatches to the statsmodels extractor."""
        registry = ExtractorRegistry()
        register_builtin_extractors(registry)
        structure = registry.extract("statsmodels", *self._fits(mediation_data), "X", "M")
        assert isinstance(structure, MediationStructure)
