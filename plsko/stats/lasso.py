"""Lasso-based statistics for the knockoff filter."""

from typing import Optional
import numpy as np
from sklearn.linear_model import LassoCV, LogisticRegressionCV, lasso_path
from sklearn.preprocessing import StandardScaler

from .base import (
    swap_columns, correct_for_swap, compute_difference_stat,
    compute_signed_max_stat, sklearn_seed
)


def _lambda_sequence(X: np.ndarray, y: np.ndarray, nlambda: int) -> np.ndarray:
    """Log-spaced lambda grid from lambda_max down to lambda_max / 2000."""
    n = X.shape[0]
    lambda_max = np.max(np.abs(X.T @ y)) / n
    lambda_min = lambda_max / 2000
    k = np.arange(nlambda) / nlambda
    return lambda_max * (lambda_min / lambda_max) ** k


def _lasso_max_lambda(X: np.ndarray, y: np.ndarray, nlambda: int = 500) -> np.ndarray:
    """
    Largest lambda at which each variable enters the lasso path.

    Parameters
    ----------
    X : array-like of shape (n, m)
        Feature matrix.
    y : array-like of shape (n,)
        Numeric response vector.
    nlambda : int, default=500
        Number of lambda values.

    Returns
    -------
    np.ndarray of shape (m,)
        Entry lambda of each variable (0 if it never enters).
    """
    n, m = X.shape
    X = StandardScaler().fit_transform(X)
    y = y - y.mean()

    if not np.any(X.T @ y):
        return np.zeros(m)

    lambdas = _lambda_sequence(X, y, nlambda)
    alphas, coefs, _ = lasso_path(X, y, alphas=lambdas)

    # coefs has shape (m, n_alphas), alphas in decreasing order
    lambda_entry = np.zeros(m)
    for j in range(m):
        nonzero_idx = np.flatnonzero(np.abs(coefs[j, :]) > 0)
        if len(nonzero_idx) > 0:
            lambda_entry[j] = alphas[nonzero_idx[0]] * n

    return lambda_entry


def _cv_lasso_coefs(
    X: np.ndarray,
    y: np.ndarray,
    nlambda: int = 500,
    cv: int = 10,
    n_jobs: Optional[int] = None,
) -> np.ndarray:
    """Lasso coefficients at the cross-validated lambda."""
    m = X.shape[1]
    X = StandardScaler().fit_transform(X)

    if not np.any(X.T @ (y - y.mean())):
        return np.zeros(m)

    alphas = _lambda_sequence(X, y - y.mean(), nlambda)
    model = LassoCV(alphas=alphas, cv=cv, n_jobs=n_jobs)
    model.fit(X, y)
    return model.coef_


def _cv_logistic_coefs(
    X: np.ndarray,
    y: np.ndarray,
    cv: int = 10,
    n_jobs: Optional[int] = None,
    random_state: Optional[int] = None,
) -> np.ndarray:
    """L1-penalized logistic regression coefficients at the CV-selected C."""
    X = StandardScaler().fit_transform(X)
    model = LogisticRegressionCV(
        penalty='l1', solver='saga', cv=cv,
        n_jobs=n_jobs, max_iter=1000, random_state=random_state
    )
    model.fit(X, y)
    return model.coef_.ravel()


def _numeric_response(y: np.ndarray, name: str) -> np.ndarray:
    y = np.asarray(y)
    if not np.issubdtype(y.dtype, np.number):
        raise ValueError(f"{name} requires numeric response y")
    return y.astype(np.float64).ravel()


def stat_lasso_coefdiff(
    X: np.ndarray,
    X_k: np.ndarray,
    y: np.ndarray,
    nlambda: int = 500,
    cv: int = 10,
    cores: Optional[int] = 2,
    random_state=None,
) -> np.ndarray:
    """
    Lasso coefficient difference statistic with cross-validation.

    Computes W_j = |Z_j| - |Z_{j+p}| where Z are the lasso coefficients of
    the augmented design [X, X_k] at the CV-selected lambda.

    Parameters
    ----------
    X : array-like of shape (n, p)
        Original variables.
    X_k : array-like of shape (n, p)
        Knockoff variables.
    y : array-like of shape (n,)
        Numeric response vector.
    nlambda : int, default=500
        Number of lambda values.
    cv : int, default=10
        Number of cross-validation folds.
    cores : int, default=2
        Number of CPU cores for parallel CV.
    random_state : int or numpy.random.Generator, optional
        Seed of the column swaps.

    Returns
    -------
    np.ndarray of shape (p,)
        Statistics W.
    """
    rng = np.random.default_rng(random_state)
    X = np.asarray(X, dtype=np.float64)
    X_k = np.asarray(X_k, dtype=np.float64)
    y = _numeric_response(y, "stat_lasso_coefdiff")
    p = X.shape[1]

    X_swap, Xk_swap, swap = swap_columns(X, X_k, rng)
    Z = _cv_lasso_coefs(np.hstack([X_swap, Xk_swap]), y, nlambda=nlambda, cv=cv, n_jobs=cores)
    W = compute_difference_stat(Z, p)

    return correct_for_swap(W, swap)


def stat_lasso_lambdasmax(
    X: np.ndarray,
    X_k: np.ndarray,
    y: np.ndarray,
    nlambda: int = 500,
    random_state=None,
) -> np.ndarray:
    """
    Lasso signed maximum lambda statistic.

    Computes W_j = max(Z_j, Z_{j+p}) * sign(Z_j - Z_{j+p}) where Z is the
    largest lambda at which each variable enters the lasso path.

    Parameters
    ----------
    X : array-like of shape (n, p)
        Original variables.
    X_k : array-like of shape (n, p)
        Knockoff variables.
    y : array-like of shape (n,)
        Numeric response vector.
    nlambda : int, default=500
        Number of lambda values.
    random_state : int or numpy.random.Generator, optional
        Seed of the column swaps.

    Returns
    -------
    np.ndarray of shape (p,)
        Statistics W.
    """
    rng = np.random.default_rng(random_state)
    X = np.asarray(X, dtype=np.float64)
    X_k = np.asarray(X_k, dtype=np.float64)
    y = _numeric_response(y, "stat_lasso_lambdasmax")
    p = X.shape[1]

    X_swap, Xk_swap, swap = swap_columns(X, X_k, rng)
    Z = _lasso_max_lambda(np.hstack([X_swap, Xk_swap]), y, nlambda=nlambda)
    W = compute_signed_max_stat(Z, p)

    return correct_for_swap(W, swap)


def stat_lasso_coefdiff_bin(
    X: np.ndarray,
    X_k: np.ndarray,
    y: np.ndarray,
    cv: int = 10,
    cores: Optional[int] = 2,
    random_state=None,
) -> np.ndarray:
    """
    Penalized logistic regression coefficient difference statistic.

    Computes W_j = |Z_j| - |Z_{j+p}| where Z are the coefficients of an
    l1-penalized logistic regression with cross-validated penalty.

    Parameters
    ----------
    X : array-like of shape (n, p)
        Original variables.
    X_k : array-like of shape (n, p)
        Knockoff variables.
    y : array-like of shape (n,)
        Binary response vector.
    cv : int, default=10
        Number of cross-validation folds.
    cores : int, default=2
        Number of CPU cores for parallel CV.
    random_state : int or numpy.random.Generator, optional
        Seed of the column swaps and of the solver.

    Returns
    -------
    np.ndarray of shape (p,)
        Statistics W.
    """
    rng = np.random.default_rng(random_state)
    X = np.asarray(X, dtype=np.float64)
    X_k = np.asarray(X_k, dtype=np.float64)
    y = np.asarray(y).ravel()
    p = X.shape[1]

    if len(np.unique(y)) != 2:
        raise ValueError(
            "stat_lasso_coefdiff_bin requires a binary response y"
        )

    X_swap, Xk_swap, swap = swap_columns(X, X_k, rng)
    Z = _cv_logistic_coefs(
        np.hstack([X_swap, Xk_swap]), y, cv=cv, n_jobs=cores,
        random_state=sklearn_seed(rng)
    )
    W = compute_difference_stat(Z, p)

    return correct_for_swap(W, swap)
