import numpy as np
import pytest

from plsko import simulate_ar1


def corr_statistic(X, Xk, y):
    """Cheap sign-flip statistic: |X'y| - |Xk'y| on centered data."""
    yc = y - y.mean()
    Xc = X - X.mean(axis=0)
    Xkc = Xk - Xk.mean(axis=0)
    return np.abs(Xc.T @ yc) - np.abs(Xkc.T @ yc)


@pytest.fixture(scope="function")
def ar1_data():
    """Small AR(1) problem: n=60, p=30, 5 strong signals."""
    return simulate_ar1(n=60, p=30, rho=0.5, k=5, amplitude=3.0, seed=7)


@pytest.fixture(scope="function")
def small_X():
    rng = np.random.default_rng(0)
    return rng.standard_normal((40, 12))


@pytest.fixture
def statistic():
    return corr_statistic
