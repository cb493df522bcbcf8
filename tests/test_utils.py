"""Tests for configuration and utility helpers."""

import numpy as np
import pytest

from plsko import (
    PLSKOConfig, ConfigurationError, simulate_ar1, fdp, power, trial_seeds,
    ko_with_w, ako_with_w, normc, standardize,
)
from plsko.utils import variance_matched_noise


class TestSimulateAr1:

    def test_shapes(self):
        data = simulate_ar1(n=50, p=20, k=4, seed=0)
        assert data['X'].shape == (50, 20)
        assert data['y'].shape == (50,)
        assert len(data['nonzero']) == 4
        assert np.count_nonzero(data['beta']) == 4

    def test_adjacent_correlation(self):
        data = simulate_ar1(n=5000, p=5, rho=0.5, seed=1)
        C = np.corrcoef(data['X'], rowvar=False)
        assert C[0, 1] == pytest.approx(0.5, abs=0.05)
        assert C[0, 2] == pytest.approx(0.25, abs=0.05)

    def test_reproducible(self):
        a = simulate_ar1(n=20, p=10, seed=3)
        b = simulate_ar1(n=20, p=10, seed=3)
        np.testing.assert_array_equal(a['X'], b['X'])

    def test_invalid_rho(self):
        with pytest.raises(ConfigurationError):
            simulate_ar1(n=10, p=5, rho=1.0)


class TestFdpAndPower:

    def test_single_and_aggregated_results(self):
        W = np.concatenate([np.arange(5.0, 25.0), [-1.0]])
        single = ko_with_w(W, q=0.2)
        aggregated = ako_with_w([W, W], q=0.2)
        truth = np.arange(18)
        for result in (single, aggregated):
            assert fdp(result, truth) == pytest.approx(2 / 20)
            assert power(result, truth) == 1.0

    def test_empty_selection(self):
        result = ko_with_w(np.zeros(5))
        assert fdp(result, [0, 1]) == 0.0
        assert power(result, [0, 1]) == 0.0

    def test_boolean_support(self):
        result = ko_with_w(np.arange(1.0, 21.0), q=0.1)
        mask = np.zeros(20, dtype=bool)
        mask[:10] = True
        assert fdp(result, mask) == pytest.approx(0.5)


class TestSeeds:

    def test_trial_seeds(self):
        assert trial_seeds(7, 3) == [8, 9, 10]

    def test_trial_seeds_require_integer(self):
        with pytest.raises(ConfigurationError):
            trial_seeds(None, 3)

    def test_variance_matched_noise(self):
        rng = np.random.default_rng(0)
        x = 3.0 + 2.0 * rng.standard_normal(30)
        z = variance_matched_noise(x, np.random.default_rng(1))
        assert z.std() == pytest.approx(x.std())
        assert z.mean() == pytest.approx(x.mean())
        assert not np.allclose(z, x)

    def test_variance_matched_noise_constant(self):
        z = variance_matched_noise(np.full(5, 2.0), np.random.default_rng(0))
        np.testing.assert_array_equal(z, np.full(5, 2.0))


class TestConfig:

    def test_defaults(self):
        config = PLSKOConfig()
        assert config.threshold_abs is None
        assert config.threshold_q == 0.8
        assert config.ncomp == 'auto'
        assert config.sparsity == 0.0

    def test_from_kwargs_ignores_none(self):
        config = PLSKOConfig.from_kwargs(ncomp=None, sparsity=0.3, threshold_abs=None)
        assert config.ncomp == 'auto'
        assert config.sparsity == 0.3

    def test_from_kwargs_rejects_unknown(self):
        with pytest.raises(ConfigurationError):
            PLSKOConfig.from_kwargs(n_comp=3)

    def test_frozen(self):
        config = PLSKOConfig()
        with pytest.raises(AttributeError):
            config.sparsity = 0.5

    @pytest.mark.parametrize("ncomp", [True, 2.5, -1])
    def test_invalid_ncomp(self, ncomp):
        with pytest.raises(ConfigurationError):
            PLSKOConfig(ncomp=ncomp)


class TestNormalization:

    def test_normc(self):
        X = np.random.default_rng(0).standard_normal((10, 3))
        np.testing.assert_allclose(np.linalg.norm(normc(X), axis=0), 1.0)

    def test_standardize_constant_column(self):
        X = np.column_stack([np.arange(5.0), np.ones(5)])
        Z = standardize(X)
        np.testing.assert_allclose(Z[:, 1], 0.0)
        assert Z[:, 0].std() == pytest.approx(1.0)
