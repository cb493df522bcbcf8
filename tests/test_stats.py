"""Tests for importance statistics and their registry."""

import warnings

import numpy as np
import pytest

from plsko import ConfigurationError, ScorerContractViolation
from plsko.stats import (
    available_statistics, get_statistic, register_statistic,
    compute_statistic, validate_statistic, swap_columns, correct_for_swap,
    stat_lasso_coefdiff, stat_lasso_lambdasmax, stat_lasso_coefdiff_bin,
    stat_random_forest,
)


def _signal_problem(n=80, p=10, seed=0):
    rng = np.random.default_rng(seed)
    X = rng.standard_normal((n, p))
    Xk = rng.standard_normal((n, p))
    y = 5.0 * X[:, 0] + 0.5 * rng.standard_normal(n)
    return X, Xk, y


class TestRegistry:

    def test_builtin_methods(self):
        names = available_statistics()
        for name in ("lasso", "lasso.max.lambda", "lasso.logistic", "RF"):
            assert name in names

    def test_register_and_lookup(self):
        def my_stat(X, Xk, y):
            return np.zeros(X.shape[1])

        register_statistic("test.zero", my_stat, overwrite=True)
        assert get_statistic("test.zero") is my_stat

    def test_duplicate_registration(self):
        register_statistic("test.dup", lambda X, Xk, y: None, overwrite=True)
        with pytest.raises(ConfigurationError, match="already registered"):
            register_statistic("test.dup", lambda X, Xk, y: None)

    def test_non_callable_registration(self):
        with pytest.raises(ConfigurationError, match="callable"):
            register_statistic("test.bad", 3)

    def test_callable_passthrough(self):
        f = lambda X, Xk, y: None  # noqa: E731
        assert get_statistic(f) is f

    def test_unknown_name(self):
        with pytest.raises(ScorerContractViolation):
            get_statistic("nope")


class TestContract:

    def test_validate_accepts_column_vector(self):
        W = validate_statistic(np.ones((4, 1)), 4)
        assert W.shape == (4,)

    def test_validate_rejects_infinite(self):
        with pytest.raises(ScorerContractViolation):
            validate_statistic([1.0, np.inf], 2)

    def test_validate_rejects_non_numeric(self):
        with pytest.raises(ScorerContractViolation):
            validate_statistic(["a", "b"], 2)

    def test_random_state_only_for_accepting_statistics(self):
        X, Xk, y = _signal_problem()
        plain = lambda X, Xk, y: np.zeros(X.shape[1])  # noqa: E731
        W = compute_statistic(plain, X, Xk, y, random_state=3)
        np.testing.assert_array_equal(W, np.zeros(X.shape[1]))

    def test_swap_correction_flips_signs(self):
        rng = np.random.default_rng(0)
        X, Xk, _ = _signal_problem()
        X_swap, Xk_swap, swap = swap_columns(X, Xk, rng)
        swapped = swap.astype(bool)
        np.testing.assert_array_equal(X_swap[:, swapped], Xk[:, swapped])
        np.testing.assert_array_equal(Xk_swap[:, ~swapped], Xk[:, ~swapped])
        np.testing.assert_array_equal(correct_for_swap(np.ones(len(swap)), swap),
                                      np.where(swapped, -1.0, 1.0))


class TestBuiltinStatistics:

    @pytest.mark.parametrize("stat", [stat_lasso_lambdasmax, stat_lasso_coefdiff])
    def test_lasso_detects_signal(self, stat):
        X, Xk, y = _signal_problem()
        W = stat(X, Xk, y, random_state=0)
        assert W.shape == (X.shape[1],)
        assert W[0] > 0
        assert W[0] == np.max(W)

    def test_lasso_is_reproducible(self):
        X, Xk, y = _signal_problem()
        np.testing.assert_array_equal(
            stat_lasso_lambdasmax(X, Xk, y, random_state=4),
            stat_lasso_lambdasmax(X, Xk, y, random_state=4),
        )

    def test_logistic_lasso_detects_signal(self):
        X, Xk, _ = _signal_problem(n=120)
        y = (X[:, 0] > 0).astype(int)
        W = stat_lasso_coefdiff_bin(X, Xk, y, cv=3, random_state=0)
        assert W[0] > 0

    def test_logistic_lasso_requires_binary_response(self):
        X, Xk, y = _signal_problem()
        with pytest.raises(ValueError):
            stat_lasso_coefdiff_bin(X, Xk, y)

    def test_random_forest_detects_signal(self):
        X, Xk, y = _signal_problem()
        W = stat_random_forest(X, Xk, y, n_estimators=50, random_state=0)
        assert W[0] > 0
        assert W[0] == np.max(W)

    def test_lasso_leaves_warning_filters_alone(self):
        X, Xk, y = _signal_problem()
        before = list(warnings.filters)
        stat_lasso_coefdiff(X, Xk, y, cv=3, random_state=0)
        assert warnings.filters == before
