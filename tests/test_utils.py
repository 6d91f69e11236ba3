"""
Tests for numeric utility functions.
"""

import numpy as np
import pytest

from medfit import ConfigurationError


class TestPercentileInterval:
    """Tests for percentile_interval."""

    def test_basic_interval(self):
        """Bounds are the 2.5% and 97.5% quantiles at the default level."""
        from medfit.utils import percentile_interval

        samples = np.arange(1001, dtype=float)
        lower, upper = percentile_interval(samples)
        assert lower == pytest.approx(25.0)
        assert upper == pytest.approx(975.0)

    def test_coverage(self, rng):
        """About ci_level of the samples fall inside the interval."""
        from medfit.utils import percentile_interval

        samples = rng.normal(size=10_000)
        lower, upper = percentile_interval(samples, ci_level=0.9)
        inside = np.mean((samples >= lower) & (samples <= upper))
        assert 0.89 < inside < 0.91

    def test_narrower_level(self, rng):
        """A 50% interval is narrower than a 95% interval."""
        from medfit.utils import percentile_interval

        samples = rng.normal(size=1000)
        lo50, hi50 = percentile_interval(samples, 0.5)
        lo95, hi95 = percentile_interval(samples, 0.95)
        assert hi50 - lo50 < hi95 - lo95

    def test_axis(self, rng):
        """Intervals can be computed per column."""
        from medfit.utils import percentile_interval

        lower, upper = percentile_interval(rng.normal(size=(500, 4)), axis=0)
        assert lower.shape == (4,)
        assert np.all(lower < upper)


class TestCovarianceFactor:
    """Tests for covariance_factor."""

    def test_positive_definite(self, rng):
        """The factor reproduces a positive definite matrix."""
        from medfit.utils import covariance_factor

        a = rng.normal(size=(4, 4))
        cov = a @ a.T + np.eye(4) * 0.1
        factor = covariance_factor(cov)
        np.testing.assert_allclose(factor @ factor.T, cov, atol=1e-10)

    def test_singular_psd(self):
        """Rank-deficient matrices fall back to the eigen factor."""
        from medfit.utils import covariance_factor

        v = np.array([[1.0], [2.0], [3.0]])
        cov = v @ v.T
        factor = covariance_factor(cov)
        np.testing.assert_allclose(factor @ factor.T, cov, atol=1e-10)

    def test_not_psd(self):
        """A negative eigenvalue is rejected."""
        from medfit.utils import covariance_factor

        with pytest.raises(ConfigurationError, match="positive semi-definite"):
            covariance_factor(np.array([[1.0, 2.0], [2.0, 1.0]]))

    def test_not_symmetric(self):
        """Asymmetric matrices are rejected."""
        from medfit.utils import covariance_factor

        with pytest.raises(ConfigurationError, match="symmetric"):
            covariance_factor(np.array([[1.0, 0.5], [0.0, 1.0]]))

    def test_non_finite(self):
        """NaN entries are rejected."""
        from medfit.utils import covariance_factor

        with pytest.raises(ConfigurationError, match="non-finite"):
            covariance_factor(np.array([[np.nan, 0.0], [0.0, 1.0]]))


class TestDrawMultivariateNormal:
    """Tests for draw_multivariate_normal and replicate_generators."""

    def test_moments(self):
        """Draws have the requested mean and covariance."""
        from medfit.utils import draw_multivariate_normal, replicate_generators

        cov = np.array([[1.0, 0.6], [0.6, 2.0]])
        _, children = replicate_generators(0, 20_000)
        draws = draw_multivariate_normal(
            np.array([1.0, -1.0]), cov, [np.random.default_rng(c) for c in children]
        )
        assert draws.shape == (20_000, 2)
        np.testing.assert_allclose(draws.mean(axis=0), [1.0, -1.0], atol=0.05)
        np.testing.assert_allclose(np.cov(draws.T), cov, atol=0.08)

    def test_draw_depends_only_on_own_generator(self):
        """Draw i is the same whether drawn alone or in a batch."""
        from medfit.utils import draw_multivariate_normal, replicate_generators

        cov = np.eye(3)
        _, children = replicate_generators(99, 5)
        batch = draw_multivariate_normal(
            np.zeros(3), cov, [np.random.default_rng(c) for c in children]
        )
        _, children_again = replicate_generators(99, 5)
        single = draw_multivariate_normal(
            np.zeros(3), cov, [np.random.default_rng(children_again[3])]
        )
        np.testing.assert_array_equal(batch[3], single[0])

    def test_caller_seed_sequence_untouched(self):
        """Children are derived without advancing the caller's sequence."""
        from medfit.utils import replicate_generators

        seed = np.random.SeedSequence(5)
        _, first = replicate_generators(seed, 4)
        _, second = replicate_generators(seed, 4)
        assert seed.n_children_spawned == 0
        assert [c.generate_state(2).tolist() for c in first] == [
            c.generate_state(2).tolist() for c in second
        ]
        expected = np.random.SeedSequence(5).spawn(4)
        assert [c.generate_state(2).tolist() for c in first] == [
            c.generate_state(2).tolist() for c in expected
        ]

    def test_dimension_mismatch(self):
        """Mean and covariance must agree in size."""
        from medfit.utils import draw_multivariate_normal

        with pytest.raises(ConfigurationError, match="length"):
            draw_multivariate_normal(np.zeros(2), np.eye(3), [np.random.default_rng(0)])
