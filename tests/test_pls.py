"""Tests for sparse PLS regression and component selection."""

import numpy as np
import pytest

from plsko import SparsePLSRegression, select_ncomp, ConfigurationError
from plsko.pls import default_kmax, information_criterion


def _regression_data(n=80, m=6, seed=0):
    rng = np.random.default_rng(seed)
    X = rng.standard_normal((n, m))
    y = X @ rng.standard_normal(m) + 0.5 * rng.standard_normal(n) + 2.0
    return X, y


class TestSparsePLSRegression:

    def test_full_components_match_least_squares(self):
        X, y = _regression_data()
        fit = SparsePLSRegression(n_components=X.shape[1]).fit(X, y)

        A = np.column_stack([np.ones(len(y)), X])
        beta, *_ = np.linalg.lstsq(A, y, rcond=None)
        np.testing.assert_allclose(fit.predict(X), A @ beta, atol=1e-8)
        np.testing.assert_allclose(fit.coef_, beta[1:], atol=1e-8)

    def test_components_stop_at_rank(self):
        rng = np.random.default_rng(1)
        a, b = rng.standard_normal((2, 50))
        X = np.column_stack([a, a, b, 2 * b])
        y = a - b + 0.1 * rng.standard_normal(50)
        fit = SparsePLSRegression(n_components=4).fit(X, y)
        assert fit.n_components_ == 2
        assert np.all(np.isfinite(fit.predict(X)))

    def test_sparsity_zeroes_weights(self):
        X, y = _regression_data(m=10)
        fit = SparsePLSRegression(n_components=2, sparsity=0.5).fit(X, y)
        n_zero = np.sum(fit.x_weights_ == 0, axis=0)
        assert np.all(n_zero >= 5)
        assert np.all(n_zero < 10)

    def test_dense_weights_without_sparsity(self):
        X, y = _regression_data(m=10)
        fit = SparsePLSRegression(n_components=2).fit(X, y)
        assert np.all(fit.x_weights_ != 0)

    def test_residuals_decrease(self):
        X, y = _regression_data(m=8)
        fit = SparsePLSRegression(n_components=5, sparsity=0.3).fit(X, y)
        assert np.all(np.diff(fit.x_residual_ss_) <= 1e-9)
        assert np.all(np.diff(fit.y_residual_ss_) <= 1e-9)

    def test_constant_response_has_no_components(self):
        X, _ = _regression_data()
        fit = SparsePLSRegression(n_components=2).fit(X, np.ones(X.shape[0]))
        assert fit.n_components_ == 0
        np.testing.assert_allclose(fit.predict(X), 1.0)

    def test_invalid_sparsity(self):
        X, y = _regression_data()
        with pytest.raises(ConfigurationError):
            SparsePLSRegression(sparsity=1.0).fit(X, y)


class TestSelectNcomp:

    def test_bounds(self):
        X, y = _regression_data(n=60, m=12)
        k = select_ncomp(X, y=y)
        assert 2 <= k <= 12

    def test_pca_mode_bounds(self, ar1_data):
        X = ar1_data['X']
        k = select_ncomp(X)
        assert 2 <= k <= min(X.shape[0] - 1, X.shape[1])

    def test_floor_and_rank_cap(self):
        rng = np.random.default_rng(2)
        a, b = rng.standard_normal((2, 40))
        X = np.column_stack([a, 2 * a, b, -b])
        y = a + b
        assert select_ncomp(X, y=y, min_ncomp=3) == 2
        assert select_ncomp(X[:, :2], y=y) == 1

    def test_neighborhood_subset(self):
        X, y = _regression_data(n=60, m=12)
        k = select_ncomp(X, neighborhood_i=[0, 1, 2], y=y)
        assert 1 <= k <= 3

    def test_deterministic(self, ar1_data):
        X = ar1_data['X']
        y = X[:, 0]
        first = select_ncomp(X[:, 1:], y=y, sparsity=0.4)
        second = select_ncomp(X[:, 1:], y=y, sparsity=0.4)
        assert first == second

    def test_zero_rank_regressors(self):
        X = np.ones((20, 3))
        assert select_ncomp(X, y=np.arange(20.0)) == 0

    def test_callable_criterion(self):
        X, y = _regression_data(n=60, m=12)
        # Prefer the largest number of components
        k = select_ncomp(X, y=y, criterion=lambda V, n, m: -np.arange(len(V)), kmax=12)
        assert k == 12

    def test_default_scan_is_short(self):
        X, y = _regression_data(n=60, m=12)
        k = select_ncomp(X, y=y, criterion=lambda V, n, m: -np.arange(len(V)))
        assert k == default_kmax(60, 12)
        assert default_kmax(60, 12) < 12

    def test_default_kmax(self):
        assert default_kmax(100, 300) == 8
        assert default_kmax(40, 3) >= 1
        assert default_kmax(1000, 1000) > default_kmax(100, 100)

    def test_few_components_with_more_regressors_than_samples(self):
        rng = np.random.default_rng(3)
        n, m = 100, 298
        Z = rng.standard_normal((n, m))
        y = Z[:, :3].sum(axis=1) + rng.standard_normal(n)
        assert select_ncomp(Z, y=y) <= 3
        assert select_ncomp(Z) <= 3

    def test_sigma2_is_last_residual_variance(self):
        V = np.array([1.0, 0.6, 0.5, 0.45])
        scores = information_criterion(V, 50, 10, 'PC_p3')
        g = np.log(10) / 10
        np.testing.assert_allclose(scores, V + np.arange(4) * 0.45 * g)

    def test_invalid_kmax(self):
        X, y = _regression_data()
        with pytest.raises(ConfigurationError):
            select_ncomp(X, y=y, kmax=0)

    def test_unknown_criterion(self):
        X, y = _regression_data()
        with pytest.raises(ConfigurationError):
            select_ncomp(X, y=y, criterion="AIC")

    def test_invalid_min_ncomp(self):
        X, y = _regression_data()
        with pytest.raises(ConfigurationError):
            select_ncomp(X, y=y, min_ncomp=0)
