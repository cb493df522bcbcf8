"""Base utilities for knockoff statistics."""

from contextlib import contextmanager
from typing import Tuple, Callable, Optional
import inspect
import warnings
import numpy as np
from sklearn.exceptions import ConvergenceWarning

from ..exceptions import ScorerContractViolation


def swap_columns(
    X: np.ndarray,
    X_k: np.ndarray,
    rng: np.random.Generator,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Randomly swap columns between X and X_k for symmetry.

    By randomly swapping columns, the statistics become symmetric with
    respect to the original and knockoff variables, which gives them the
    sign-flip property.

    Parameters
    ----------
    X : array-like of shape (n, p)
        Original variables.
    X_k : array-like of shape (n, p)
        Knockoff variables.
    rng : numpy.random.Generator
        Source of the swap indicators.

    Returns
    -------
    X_swap : np.ndarray of shape (n, p)
        Swapped original variables.
    Xk_swap : np.ndarray of shape (n, p)
        Swapped knockoff variables.
    swap : np.ndarray of shape (p,)
        Binary indicator of which columns were swapped.
    """
    X = np.asarray(X)
    X_k = np.asarray(X_k)

    p = X.shape[1]
    swap = rng.binomial(1, 0.5, p)

    swap_bool = swap.astype(bool)
    X_swap = np.where(swap_bool, X_k, X)
    Xk_swap = np.where(swap_bool, X, X_k)

    return X_swap, Xk_swap, swap


def correct_for_swap(W: np.ndarray, swap: np.ndarray) -> np.ndarray:
    """Flip the sign of statistics of swapped columns."""
    return W * (1 - 2 * swap)


def compute_difference_stat(Z: np.ndarray, p: int) -> np.ndarray:
    """
    Compute W_j = |Z_j| - |Z_{j+p}|.

    Parameters
    ----------
    Z : array-like of shape (2*p,)
        Importance scores for original and knockoff variables.
    p : int
        Number of original variables.

    Returns
    -------
    np.ndarray of shape (p,)
        Difference statistics.
    """
    orig = np.arange(p)
    return np.abs(Z[orig]) - np.abs(Z[orig + p])


def compute_signed_max_stat(Z: np.ndarray, p: int) -> np.ndarray:
    """
    Compute W_j = max(Z_j, Z_{j+p}) * sign(Z_j - Z_{j+p}).

    Parameters
    ----------
    Z : array-like of shape (2*p,)
        Importance scores for original and knockoff variables.
    p : int
        Number of original variables.

    Returns
    -------
    np.ndarray of shape (p,)
        Signed maximum statistics.
    """
    orig = np.arange(p)
    Z_orig = Z[orig]
    Z_knock = Z[orig + p]
    return np.maximum(Z_orig, Z_knock) * np.sign(Z_orig - Z_knock)


def sklearn_seed(rng: np.random.Generator) -> int:
    """Draw an integer seed for a scikit-learn estimator."""
    return int(rng.integers(2 ** 31 - 1))


def _accepts_random_state(func: Callable) -> bool:
    try:
        params = inspect.signature(func).parameters
    except (TypeError, ValueError):
        return False
    return 'random_state' in params or any(
        prm.kind == inspect.Parameter.VAR_KEYWORD for prm in params.values()
    )


def validate_statistic(W, p: int, name: str = "statistic") -> np.ndarray:
    """
    Check the output of an importance statistic.

    Parameters
    ----------
    W : array-like
        Output of the statistic.
    p : int
        Number of original variables.
    name : str
        Name of the statistic, used in error messages.

    Returns
    -------
    np.ndarray of shape (p,)
        W as a float array.

    Raises
    ------
    ScorerContractViolation
        If W is not numeric, does not have p entries, or holds NaN or
        infinite values.
    """
    try:
        W = np.asarray(W, dtype=np.float64)
    except (TypeError, ValueError):
        raise ScorerContractViolation(f"{name} returned non-numeric values")

    if W.ndim > 1 and W.size == p:
        W = W.ravel()
    if W.shape != (p,):
        raise ScorerContractViolation(
            f"{name} returned shape {W.shape}, expected ({p},)"
        )
    if not np.all(np.isfinite(W)):
        raise ScorerContractViolation(f"{name} returned NaN or infinite values")
    return W


def compute_statistic(
    statistic: Callable,
    X: np.ndarray,
    X_k: np.ndarray,
    y: np.ndarray,
    random_state: Optional[object] = None,
    **kwargs
) -> np.ndarray:
    """
    Call an importance statistic and validate its output.

    ``random_state`` is forwarded only to statistics that accept it, so
    plain ``f(X, Xk, y)`` closures work unchanged.

    Returns
    -------
    np.ndarray of shape (p,)
        Validated statistics W.
    """
    if random_state is not None and _accepts_random_state(statistic):
        kwargs['random_state'] = random_state
    W = statistic(X, X_k, y, **kwargs)
    name = getattr(statistic, '__name__', type(statistic).__name__)
    return validate_statistic(W, X.shape[1], name=name)


@contextmanager
def quiet_solvers():
    """
    Silence scikit-learn convergence warnings while the block runs.

    The warning filter list is process-wide, so enter this only from the
    thread that starts a run, never from inside worker threads.
    """
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=ConvergenceWarning)
        yield
