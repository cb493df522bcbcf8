"""Knockoff threshold and the single-run knockoff filter."""

from dataclasses import dataclass
from typing import Optional, Callable, Union, List, Any
import numpy as np

from .config import PLSKOConfig
from .create import DEFAULT_SEED, generate_knockoffs
from .exceptions import ConfigurationError, ScorerContractViolation
from .neighborhood import resolve_neighborhood
from .stats import get_statistic, compute_statistic, quiet_solvers
from .utils import as_design_matrix, feature_names_of

# Stream of the statistic's random draws, distinct from the knockoff draws
_STATISTIC_STREAM = 1


def _frozen_array(a, dtype=None) -> np.ndarray:
    a = np.array(a, dtype=dtype)
    a.setflags(write=False)
    return a


@dataclass(frozen=True)
class SelectionResult:
    """
    Common interface of knockoff selection results.

    Attributes
    ----------
    statistic : np.ndarray of shape (p,)
        Statistics the threshold was applied to.
    threshold : float
        Selection threshold; ``np.inf`` means nothing was selected.
    selected : np.ndarray
        Sorted indices of selected variables.
    q : float
        Target false discovery rate.
    offset : int
        1 for knockoff+, 0 for knockoff.
    feature_names : list of str, optional
        Names of all variables, when known.
    """
    statistic: np.ndarray
    threshold: float
    selected: np.ndarray
    q: float = 0.05
    offset: int = 1
    feature_names: Optional[List[str]] = None

    def __post_init__(self):
        object.__setattr__(self, 'statistic', _frozen_array(self.statistic, np.float64))
        object.__setattr__(self, 'selected', _frozen_array(self.selected, int))

    @property
    def n_selected(self) -> int:
        return len(self.selected)

    @property
    def selected_names(self) -> Optional[List[str]]:
        """Names of the selected variables, when feature names are known."""
        if self.feature_names is None:
            return None
        return [self.feature_names[i] for i in self.selected]


@dataclass(frozen=True)
class KnockoffResult(SelectionResult):
    """
    Result of one run of the knockoff filter.

    Attributes
    ----------
    X : np.ndarray, optional
        Matrix of original variables.
    Xk : np.ndarray, optional
        Matrix of knockoff variables.
    y : np.ndarray, optional
        Response vector.
    """
    X: Optional[np.ndarray] = None
    Xk: Optional[np.ndarray] = None
    y: Optional[np.ndarray] = None

    def __repr__(self) -> str:
        return (
            f"KnockoffResult(\n"
            f"  n_features={len(self.statistic)},\n"
            f"  n_selected={self.n_selected},\n"
            f"  selected={self.selected.tolist()},\n"
            f"  threshold={self.threshold:.4f}\n"
            f")"
        )


def _check_level(q: float, offset: int) -> None:
    if offset not in (0, 1):
        raise ConfigurationError("offset must be either 0 or 1")
    if not 0 < q <= 1:
        raise ConfigurationError(f"q must lie in (0, 1], got {q}")


def _as_statistic(W) -> np.ndarray:
    try:
        W = np.asarray(W, dtype=np.float64)
    except (TypeError, ValueError):
        raise ScorerContractViolation("W must be numeric")
    if W.ndim != 1:
        raise ScorerContractViolation(f"W must be a 1D array, got {W.ndim}D")
    if not np.all(np.isfinite(W)):
        raise ScorerContractViolation("W must not contain NaN or infinite values")
    return W


def knockoff_threshold(W: np.ndarray, q: float = 0.05, offset: int = 1) -> float:
    """
    Compute the threshold for the knockoff filter.

    The threshold is the smallest t among the nonzero |W_j| with

        (offset + #{j: W_j <= -t}) / max(1, #{j: W_j >= t}) <= q,

    or ``np.inf`` when no such t exists.

    Parameters
    ----------
    W : array-like of shape (p,)
        Test statistics.
    q : float, default=0.05
        Target false discovery rate.
    offset : {0, 1}, default=1
        The value 1 yields a slightly more conservative procedure ("knockoffs+")
        that controls the FDR according to the usual definition, while an
        offset of 0 controls a modified FDR.

    Returns
    -------
    float
        The threshold for variable selection.
    """
    _check_level(q, offset)
    W = _as_statistic(W)

    ts = np.unique(np.abs(W[W != 0]))
    if ts.size == 0:
        return np.inf

    W_sorted = np.sort(W)
    p = W.shape[0]
    n_neg = np.searchsorted(W_sorted, -ts, side='right')
    n_pos = p - np.searchsorted(W_sorted, ts, side='left')
    ratio = (offset + n_neg) / np.maximum(1, n_pos)

    ok = np.flatnonzero(ratio <= q)
    if ok.size == 0:
        return np.inf
    return float(ts[ok[0]])


def knockoff_select(W: np.ndarray, threshold: float) -> np.ndarray:
    """Sorted indices j with W_j >= threshold."""
    if not np.isfinite(threshold):
        return np.array([], dtype=int)
    return np.flatnonzero(np.asarray(W) >= threshold)


def ko_with_w(
    W: np.ndarray,
    q: float = 0.05,
    offset: int = 1,
    feature_names: Optional[List[str]] = None,
) -> KnockoffResult:
    """
    Run the knockoff selection on precomputed statistics.

    Parameters
    ----------
    W : array-like of shape (p,)
        Test statistics.
    q : float, default=0.05
        Target false discovery rate.
    offset : {0, 1}, default=1
        1 for knockoff+, 0 for knockoff.
    feature_names : list of str, optional
        Names of the variables.

    Returns
    -------
    KnockoffResult
        Statistic, threshold and selected variables.

    Examples
    --------
    >>> from plsko import ko_with_w
    >>> ko_with_w([2, -1, 3, -3, 0], q=0.05).selected
    array([], dtype=int64)
    """
    W = _as_statistic(W)
    t = knockoff_threshold(W, q=q, offset=offset)
    return KnockoffResult(
        statistic=W,
        threshold=t,
        selected=knockoff_select(W, t),
        q=q,
        offset=offset,
        feature_names=feature_names,
    )


def _statistic_seed(seed):
    """Seed of the statistic's draws for a knockoff seed."""
    if seed is None:
        return None
    return np.random.SeedSequence([int(seed), _STATISTIC_STREAM])


def _check_response(y, n: int) -> np.ndarray:
    y = np.asarray(y)
    if not (np.issubdtype(y.dtype, np.number) or np.issubdtype(y.dtype, np.object_)
            or np.issubdtype(y.dtype, np.str_) or y.dtype == bool):
        raise ConfigurationError("y must be numeric or categorical")
    if y.ndim > 1:
        y = y.ravel()
    if len(y) != n:
        raise ConfigurationError(
            f"Length of y ({len(y)}) must match number of rows in X ({n})"
        )
    return y


def _score_and_select(
    X: np.ndarray,
    Xk: np.ndarray,
    y: np.ndarray,
    statistic: Callable,
    q: float,
    offset: int,
    random_state: Any,
    feature_names: Optional[List[str]],
    statistic_kwargs: Optional[dict],
) -> KnockoffResult:
    W = compute_statistic(statistic, X, Xk, y, random_state=random_state,
                          **(statistic_kwargs or {}))
    t = knockoff_threshold(W, q=q, offset=offset)
    return KnockoffResult(
        statistic=W,
        threshold=t,
        selected=knockoff_select(W, t),
        q=q,
        offset=offset,
        feature_names=feature_names,
        X=X,
        Xk=Xk,
        y=y,
    )


def ko_filter(
    X: np.ndarray,
    Xk: np.ndarray,
    y: np.ndarray,
    q: float = 0.05,
    method: Union[str, Callable] = 'lasso',
    offset: int = 1,
    seed: Optional[int] = DEFAULT_SEED,
    statistic_kwargs: Optional[dict] = None,
) -> KnockoffResult:
    """
    Run the knockoff filter with caller-supplied knockoffs.

    Parameters
    ----------
    X : array-like of shape (n, p)
        Matrix of original variables.
    Xk : array-like of shape (n, p)
        Matrix of knockoff variables.
    y : array-like of shape (n,)
        Response vector.
    q : float, default=0.05
        Target false discovery rate.
    method : str or callable, default='lasso'
        Registered statistic name (see :func:`plsko.stats.available_statistics`)
        or a callable ``f(X, Xk, y) -> W``.
    offset : {0, 1}, default=1
        1 for knockoff+, 0 for knockoff.
    seed : int, optional
        Seed passed to statistics that accept ``random_state``.
    statistic_kwargs : dict, optional
        Extra keyword arguments for the statistic.

    Returns
    -------
    KnockoffResult
        Object containing X, Xk, y, statistic, threshold, and selected.
    """
    feature_names = feature_names_of(X)
    X = as_design_matrix(X)
    Xk = as_design_matrix(Xk, name="Xk")
    if Xk.shape != X.shape:
        raise ConfigurationError(
            f"Knockoff matrix has shape {Xk.shape} but X has shape {X.shape}"
        )
    y = _check_response(y, X.shape[0])
    _check_level(q, offset)

    statistic = get_statistic(method)
    with quiet_solvers():
        return _score_and_select(
            X, Xk, y, statistic, q, offset,
            random_state=seed, feature_names=feature_names,
            statistic_kwargs=statistic_kwargs,
        )


def plsko_filter(
    X: np.ndarray,
    y: np.ndarray,
    q: float = 0.05,
    method: Union[str, Callable] = 'lasso',
    offset: int = 1,
    threshold_abs: Optional[float] = None,
    ncomp: Union[int, str] = 'auto',
    sparsity: float = 0.0,
    nb_list: Optional[Any] = None,
    seed: int = DEFAULT_SEED,
    statistic_kwargs: Optional[dict] = None,
    **knockoff_options
) -> KnockoffResult:
    """
    Run the knockoff filter with PLS knockoffs.

    Generates one PLS knockoff matrix (see :func:`plsko.plsko`), computes
    importance statistics and selects variables while controlling the
    false discovery rate.

    Parameters
    ----------
    X : array-like of shape (n, p)
        Matrix of predictors.
    y : array-like of shape (n,)
        Response vector.
    q : float, default=0.05
        Target false discovery rate.
    method : str or callable, default='lasso'
        Importance statistic.
    offset : {0, 1}, default=1
        1 for knockoff+, 0 for knockoff.
    threshold_abs, ncomp, sparsity, nb_list
        Knockoff options, see :func:`plsko.plsko`.
    seed : int, default=1
        Seed of the knockoffs; the statistic draws from a stream derived
        from it.
    statistic_kwargs : dict, optional
        Extra keyword arguments for the statistic.
    **knockoff_options
        Further :class:`plsko.PLSKOConfig` fields (``threshold_q``,
        ``min_ncomp``, ``criterion``, ``residual``).

    Returns
    -------
    KnockoffResult
        Object containing X, Xk, y, statistic, threshold, and selected.

    Examples
    --------
    >>> from plsko import plsko_filter, simulate_ar1
    >>> data = simulate_ar1(100, 150, rho=0.5, k=25, seed=0)
    >>> result = plsko_filter(data['X'], data['y'], q=0.1)
    >>> result.selected
    """
    feature_names = feature_names_of(X)
    config = PLSKOConfig.from_kwargs(
        threshold_abs=threshold_abs,
        ncomp=ncomp,
        sparsity=sparsity,
        nb_list=nb_list,
        **knockoff_options
    )
    X = as_design_matrix(X)
    y = _check_response(y, X.shape[0])
    _check_level(q, offset)
    statistic = get_statistic(method)

    neighborhood = resolve_neighborhood(
        X,
        threshold_abs=config.threshold_abs,
        threshold_q=config.threshold_q,
        nb_list=config.nb_list,
    )
    Xk = generate_knockoffs(X, neighborhood, config, seed=seed).Xk

    with quiet_solvers():
        return _score_and_select(
            X, Xk, y, statistic, q, offset,
            random_state=_statistic_seed(seed), feature_names=feature_names,
            statistic_kwargs=statistic_kwargs,
        )
