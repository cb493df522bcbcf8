"""Utility functions for plsko."""

from typing import Optional, List, Union
import numpy as np
from scipy import linalg

from .exceptions import ConfigurationError


def as_design_matrix(X, name: str = "X") -> np.ndarray:
    """
    Convert an input to a finite 2D float64 array.

    Parameters
    ----------
    X : array-like of shape (n, p)
        Matrix of variables.
    name : str, default='X'
        Name used in error messages.

    Returns
    -------
    np.ndarray of shape (n, p)
        The matrix as float64.
    """
    try:
        X = np.asarray(X, dtype=np.float64)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be numeric")

    if X.ndim != 2:
        raise ConfigurationError(f"{name} must be a 2D array, got {X.ndim}D")
    if not np.all(np.isfinite(X)):
        raise ConfigurationError(f"{name} must not contain missing or infinite values")

    return X


def feature_names_of(X) -> Optional[List[str]]:
    """Return column names of a data frame, or None for plain arrays."""
    if hasattr(X, 'columns'):
        return [str(c) for c in X.columns]
    return None


def normc(X: np.ndarray, center: bool = True) -> np.ndarray:
    """
    Scale the columns of a matrix to have unit norm.

    Parameters
    ----------
    X : array-like of shape (n, p)
        Matrix to normalize.
    center : bool, default=True
        Whether to center columns before scaling.

    Returns
    -------
    np.ndarray of shape (n, p)
        Matrix with unit-norm columns.
    """
    X = np.asarray(X, dtype=np.float64)

    if center:
        X = X - X.mean(axis=0)

    norms = np.sqrt(np.sum(X ** 2, axis=0))
    # Avoid division by zero
    norms[norms == 0] = 1.0

    return X / norms


def standardize(X: np.ndarray) -> np.ndarray:
    """
    Standardize columns to have zero mean and unit variance.

    Constant columns are centered but left unscaled.
    """
    X = np.asarray(X, dtype=np.float64)
    X = X - X.mean(axis=0)
    std = X.std(axis=0)
    std[std == 0] = 1.0
    return X / std


def matrix_rank(X: np.ndarray, rtol: float = 1e-8) -> int:
    """
    Numerical rank of a (column-centered) matrix.

    Parameters
    ----------
    X : array-like of shape (n, m)
        Matrix whose rank is computed.
    rtol : float, default=1e-8
        Singular values below ``rtol * max(singular value)`` count as zero.

    Returns
    -------
    int
        Number of singular values above the tolerance.
    """
    X = np.asarray(X, dtype=np.float64)
    if X.size == 0:
        return 0
    d = linalg.svdvals(X)
    if d.size == 0 or d[0] <= 0:
        return 0
    return int(np.sum(d > rtol * d[0]))


def variance_matched_noise(
    x: np.ndarray,
    rng: np.random.Generator,
) -> np.ndarray:
    """
    Draw Gaussian noise with the sample mean and variance of x.

    The draw is standardized before rescaling, so the mean and the
    standard deviation of the output equal those of x exactly (up to
    floating point error).

    Parameters
    ----------
    x : array-like of shape (n,)
        Column whose first two moments are matched.
    rng : numpy.random.Generator
        Source of randomness.

    Returns
    -------
    np.ndarray of shape (n,)
        Noise column.
    """
    x = np.asarray(x, dtype=np.float64)
    n = x.shape[0]
    sd = x.std()

    z = rng.standard_normal(n)
    if n < 2 or sd == 0:
        return np.full(n, x.mean())

    z = z - z.mean()
    z_sd = z.std()
    if z_sd == 0:
        return np.full(n, x.mean())

    return z / z_sd * sd + x.mean()


def trial_seeds(seed: int, n_ko: int) -> List[int]:
    """
    Derive one seed per knockoff trial.

    Trial ``k`` (1-based) uses ``seed + k``, so trial seeds are distinct
    and each trial can be reproduced on its own with ``plsko(X, seed=seed + k)``.

    Parameters
    ----------
    seed : int
        Base seed.
    n_ko : int
        Number of trials.

    Returns
    -------
    list of int
        Seeds ``[seed + 1, ..., seed + n_ko]``.
    """
    if isinstance(seed, (bool, np.bool_)) or not isinstance(seed, (int, np.integer)):
        raise ConfigurationError(
            f"seed must be an integer to derive per-trial seeds, got {seed!r}"
        )
    if n_ko < 1:
        raise ConfigurationError(f"n_ko must be a positive integer, got {n_ko}")
    return [int(seed) + k for k in range(1, n_ko + 1)]


def simulate_ar1(
    n: int,
    p: int,
    rho: float = 0.5,
    k: Optional[int] = None,
    amplitude: float = 1.0,
    noise_sd: float = 1.0,
    seed: Optional[int] = None,
) -> dict:
    """
    Generate a sparse linear regression problem with an AR(1) design.

    The rows of X are i.i.d. Gaussian with covariance
    ``Sigma[i, j] = rho ** |i - j|``, which mimics the local correlation
    structure of omics data.

    Parameters
    ----------
    n : int
        Number of samples.
    p : int
        Number of features.
    rho : float, default=0.5
        Autocorrelation between adjacent features.
    k : int, optional
        Number of nonzero coefficients. Default is max(1, p // 6).
    amplitude : float, default=1.0
        Magnitude of nonzero coefficients; signs are random.
    noise_sd : float, default=1.0
        Standard deviation of the Gaussian response noise.
    seed : int, optional
        Random seed for reproducibility.

    Returns
    -------
    dict
        Dictionary containing:
        - 'X': Feature matrix of shape (n, p)
        - 'y': Response vector of shape (n,)
        - 'beta': True coefficients of shape (p,)
        - 'nonzero': Sorted indices of nonzero coefficients
    """
    if not -1 < rho < 1:
        raise ConfigurationError(f"rho must lie in (-1, 1), got {rho}")

    rng = np.random.default_rng(seed)

    if k is None:
        k = max(1, p // 6)

    # AR(1) recursion gives exactly Sigma = rho ** |i - j| with unit variances
    X = np.empty((n, p))
    X[:, 0] = rng.standard_normal(n)
    scale = np.sqrt(1 - rho ** 2)
    for j in range(1, p):
        X[:, j] = rho * X[:, j - 1] + scale * rng.standard_normal(n)

    nonzero = np.sort(rng.choice(p, k, replace=False))
    beta = np.zeros(p)
    beta[nonzero] = amplitude * rng.choice([-1.0, 1.0], size=k)
    y = X @ beta + noise_sd * rng.standard_normal(n)

    return {
        'X': X,
        'y': y,
        'beta': beta,
        'nonzero': nonzero
    }


def _support_set(true_support) -> set:
    support = np.asarray(true_support)
    if support.dtype == bool:
        support = np.flatnonzero(support)
    return set(int(i) for i in support.ravel())


def fdp(result, true_support: Union[np.ndarray, List[int]]) -> float:
    """
    False discovery proportion of a selection.

    Works with any selection result (single run or aggregated), since it
    only reads ``result.selected``.

    Parameters
    ----------
    result : SelectionResult
        Output of a knockoff filter.
    true_support : array-like
        Indices of the truly relevant variables, or a boolean mask.

    Returns
    -------
    float
        #false selections / max(1, #selections).
    """
    selected = set(int(i) for i in result.selected)
    support = _support_set(true_support)
    false = len(selected - support)
    return false / max(1, len(selected))


def power(result, true_support: Union[np.ndarray, List[int]]) -> float:
    """Fraction of truly relevant variables that were selected."""
    selected = set(int(i) for i in result.selected)
    support = _support_set(true_support)
    if not support:
        return 0.0
    return len(selected & support) / len(support)
