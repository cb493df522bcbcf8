"""Tests for PLS knockoff generation."""

import warnings

import numpy as np
import pytest

from plsko import (
    plsko, PLSKnockoffs, ConfigurationError, FitDegeneracyWarning,
)
from plsko.pls import default_kmax


class TestPlsko:

    @pytest.mark.parametrize("threshold_abs", [None, 0, 0.2, 0.9])
    def test_shape(self, ar1_data, threshold_abs):
        X = ar1_data['X']
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", FitDegeneracyWarning)
            Xk = plsko(X, threshold_abs=threshold_abs)
        assert Xk.shape == X.shape
        assert np.all(np.isfinite(Xk))

    def test_full_neighborhoods_with_zero_threshold(self, ar1_data):
        X = ar1_data['X']
        details = plsko(X, threshold_abs=0, return_details=True)
        assert isinstance(details, PLSKnockoffs)
        assert details.neighborhood.is_full
        assert details.degenerate.size == 0

    def test_same_seed_is_bit_identical(self, ar1_data):
        X = ar1_data['X']
        first = plsko(X, seed=11)
        second = plsko(X, seed=11)
        np.testing.assert_array_equal(first, second)

    def test_different_seeds_differ(self, ar1_data):
        X = ar1_data['X']
        assert not np.array_equal(plsko(X, seed=11), plsko(X, seed=12))

    def test_default_seed_is_fixed(self, ar1_data):
        X = ar1_data['X']
        np.testing.assert_array_equal(plsko(X), plsko(X, seed=1))

    def test_input_not_mutated(self, ar1_data):
        X = ar1_data['X']
        before = X.copy()
        plsko(X, sparsity=0.5)
        np.testing.assert_array_equal(X, before)

    def test_knockoffs_are_not_copies(self, ar1_data):
        X = ar1_data['X']
        Xk = plsko(X, threshold_abs=0.2)
        corr = [np.corrcoef(X[:, j], Xk[:, j])[0, 1] for j in range(X.shape[1])]
        assert np.median(corr) < 0.95

    @pytest.mark.parametrize("ncomp", ['auto', 'global'])
    def test_full_neighborhood_knockoffs_are_not_copies(self, ar1_data, ncomp):
        X = ar1_data['X']
        n, p = X.shape
        details = plsko(X, threshold_abs=0, ncomp=ncomp, return_details=True)
        # Regressors: p - 1 originals plus up to p - 1 earlier knockoffs
        assert details.ncomp.max() <= default_kmax(n, 2 * p - 2)
        corr = [np.corrcoef(X[:, j], details.Xk[:, j])[0, 1] for j in range(p)]
        assert np.median(corr) < 0.95

    def test_knockoffs_keep_marginal_scale(self, ar1_data):
        X = ar1_data['X']
        Xk = plsko(X, threshold_abs=0.2)
        ratio = Xk.std(axis=0) / X.std(axis=0)
        assert np.all(ratio > 0.5)
        assert np.all(ratio < 1.5)

    def test_empty_neighborhood_falls_back_to_matched_noise(self, small_X):
        X = small_X
        p = X.shape[1]
        nb_list = [[j for j in range(1, p) if j != i] for i in range(p)]
        nb_list[0] = []
        with pytest.warns(FitDegeneracyWarning):
            details = plsko(X, nb_list=nb_list, seed=5, return_details=True)

        Xk = details.Xk
        assert Xk[:, 0].shape == (X.shape[0],)
        assert Xk[:, 0].std() == pytest.approx(X[:, 0].std())
        assert Xk[:, 0].mean() == pytest.approx(X[:, 0].mean())
        np.testing.assert_array_equal(details.degenerate, [0])
        assert details.ncomp[0] == 0
        assert np.all(details.ncomp[1:] >= 1)

    def test_all_empty_neighborhoods(self, small_X):
        X = small_X
        p = X.shape[1]
        with pytest.warns(FitDegeneracyWarning):
            Xk = plsko(X, nb_list=np.zeros((p, p)))
        np.testing.assert_allclose(Xk.std(axis=0), X.std(axis=0))

    def test_fixed_ncomp(self, ar1_data):
        X = ar1_data['X']
        details = plsko(X, threshold_abs=0, ncomp=3, return_details=True)
        assert np.all(details.ncomp <= 3)
        assert np.all(details.ncomp >= 1)

    def test_global_ncomp(self, ar1_data):
        X = ar1_data['X']
        details = plsko(X, threshold_abs=0, ncomp='global', return_details=True)
        assert len(np.unique(details.ncomp)) == 1

    def test_ncomp_never_exceeds_regressors(self, small_X):
        X = small_X
        p = X.shape[1]
        nb_list = [[(i + 1) % p, (i - 1) % p] for i in range(p)]
        details = plsko(X, nb_list=nb_list, ncomp=10, return_details=True)
        # Two original neighbors plus at most two earlier knockoffs
        assert np.all(details.ncomp <= 4)

    def test_gaussian_residuals(self, ar1_data):
        X = ar1_data['X']
        Xk = plsko(X, threshold_abs=0.2, residual='gaussian')
        assert Xk.shape == X.shape
        assert not np.array_equal(Xk, plsko(X, threshold_abs=0.2))

    def test_sparsity_changes_knockoffs(self, ar1_data):
        X = ar1_data['X']
        assert not np.array_equal(
            plsko(X, threshold_abs=0, sparsity=0.0),
            plsko(X, threshold_abs=0, sparsity=0.8),
        )

    @pytest.mark.parametrize("options", [
        {"sparsity": 1.0},
        {"sparsity": -0.1},
        {"ncomp": 0},
        {"ncomp": "many"},
        {"threshold_abs": 2.0},
        {"residual": "bootstrap"},
        {"min_ncomp": 0},
    ])
    def test_invalid_options(self, small_X, options):
        with pytest.raises(ConfigurationError):
            plsko(small_X, **options)

    def test_rejects_missing_values(self, small_X):
        X = small_X.copy()
        X[0, 0] = np.nan
        with pytest.raises(ConfigurationError):
            plsko(X)
