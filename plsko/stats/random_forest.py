"""Random forest statistics for knockoff filter."""

import numpy as np
from sklearn.ensemble import RandomForestRegressor, RandomForestClassifier

from .base import swap_columns, correct_for_swap, compute_difference_stat, sklearn_seed


def _is_classification(y: np.ndarray) -> bool:
    if not np.issubdtype(y.dtype, np.number):
        return True
    unique_vals = np.unique(y)
    return len(unique_vals) <= 10 and np.all(unique_vals == unique_vals.astype(int))


def stat_random_forest(
    X: np.ndarray,
    X_k: np.ndarray,
    y: np.ndarray,
    n_estimators: int = 100,
    n_jobs: int = 1,
    random_state=None,
    **kwargs
) -> np.ndarray:
    """
    Random forest importance difference statistic.

    Computes W_j = |Z_j| - |Z_{j+p}| where Z is the impurity-based feature
    importance of a random forest fitted on [X, X_k].

    Parameters
    ----------
    X : array-like of shape (n, p)
        Original variables.
    X_k : array-like of shape (n, p)
        Knockoff variables.
    y : array-like of shape (n,)
        Response vector (numeric for regression, categorical for classification).
    n_estimators : int, default=100
        Number of trees in the forest.
    n_jobs : int, default=1
        Number of parallel jobs.
    random_state : int or numpy.random.Generator, optional
        Seed of the column swaps and of the forest.
    **kwargs
        Passed to the scikit-learn forest.

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

    X_swap, Xk_swap, swap = swap_columns(X, X_k, rng)
    X_combined = np.hstack([X_swap, Xk_swap])

    forest = RandomForestClassifier if _is_classification(y) else RandomForestRegressor
    model = forest(
        n_estimators=n_estimators,
        n_jobs=n_jobs,
        random_state=sklearn_seed(rng),
        **kwargs
    )
    model.fit(X_combined, y)

    W = compute_difference_stat(model.feature_importances_, p)
    return correct_for_swap(W, swap)
