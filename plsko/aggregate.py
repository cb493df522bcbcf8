"""Aggregation of multiple knockoff trials (AKO)."""

from dataclasses import dataclass
from typing import Optional, Callable, Union, List, Any, Sequence, Tuple
import hashlib
import logging
import warnings
import numpy as np
from joblib import Parallel, delayed
from scipy.stats import rankdata

from .config import PLSKOConfig
from .create import DEFAULT_SEED, generate_knockoffs, resolve_global_ncomp
from .exceptions import ConfigurationError
from .filter import (
    SelectionResult, KnockoffResult, knockoff_threshold, knockoff_select,
    ko_with_w, _score_and_select, _statistic_seed, _check_response,
    _check_level, _frozen_array,
)
from .neighborhood import resolve_neighborhood
from .stats import get_statistic, quiet_solvers
from .utils import as_design_matrix, feature_names_of, trial_seeds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AKOResult(SelectionResult):
    """
    Result of the aggregated knockoff procedure.

    ``statistic`` holds the aggregated score the final threshold was
    applied to and ``selected`` the aggregated selection.

    Attributes
    ----------
    statistics : np.ndarray of shape (n_ko, p)
        Statistics W of every trial, in trial order.
    per_trial_results : tuple of KnockoffResult
        Single-run results, in trial order.
    selection_frequency : np.ndarray of shape (p,)
        Fraction of trials that selected each variable.
    seeds : tuple of int
        Seeds of the trials, when known.
    """
    statistics: Optional[np.ndarray] = None
    per_trial_results: Tuple[KnockoffResult, ...] = ()
    selection_frequency: Optional[np.ndarray] = None
    seeds: Tuple[int, ...] = ()

    def __post_init__(self):
        super().__post_init__()
        for name in ('statistics', 'selection_frequency'):
            if getattr(self, name) is not None:
                object.__setattr__(self, name, _frozen_array(getattr(self, name), np.float64))
        object.__setattr__(self, 'per_trial_results', tuple(self.per_trial_results))
        object.__setattr__(self, 'seeds', tuple(self.seeds))

    @property
    def ako_selected(self) -> np.ndarray:
        """Variables selected by the aggregated procedure."""
        return self.selected

    @property
    def n_ko(self) -> int:
        return len(self.per_trial_results)

    def __repr__(self) -> str:
        return (
            f"AKOResult(\n"
            f"  n_features={len(self.statistic)},\n"
            f"  n_ko={self.n_ko},\n"
            f"  n_selected={self.n_selected},\n"
            f"  selected={self.selected.tolist()},\n"
            f"  threshold={self.threshold:.4f}\n"
            f")"
        )


def signed_rank_scores(W: np.ndarray) -> np.ndarray:
    """
    Map statistics to signed normalized ranks.

    ``score_j = sign(W_j) * rank(|W_j|) / p`` with average ranks for ties.
    The map is odd and strictly increasing in W, so the knockoff selection
    on the scores equals the selection on W.
    """
    W = np.asarray(W, dtype=np.float64)
    p = W.shape[-1]
    ranks = rankdata(np.abs(W), axis=-1)
    return np.sign(W) * ranks / p


def aggregate_statistics(statistics: np.ndarray) -> np.ndarray:
    """
    Combine the statistics of several trials into one score per variable.

    Each trial is converted to signed normalized ranks and the per-variable
    median over trials is taken. The result does not depend on the order of
    the trials.

    Parameters
    ----------
    statistics : array-like of shape (n_ko, p)
        One row of statistics W per trial.

    Returns
    -------
    np.ndarray of shape (p,)
        Aggregated score.
    """
    statistics = np.asarray(statistics, dtype=np.float64)
    return np.median(signed_rank_scores(statistics), axis=0)


def _aggregate(
    per_trial: Sequence[KnockoffResult],
    q: float,
    offset: int,
    feature_names: Optional[List[str]] = None,
    seeds: Sequence[int] = (),
) -> AKOResult:
    statistics = np.vstack([r.statistic for r in per_trial])
    p = statistics.shape[1]

    score = aggregate_statistics(statistics)
    t = knockoff_threshold(score, q=q, offset=offset)

    frequency = np.zeros(p)
    for r in per_trial:
        frequency[r.selected] += 1
    frequency /= len(per_trial)

    return AKOResult(
        statistic=score,
        threshold=t,
        selected=knockoff_select(score, t),
        q=q,
        offset=offset,
        feature_names=feature_names,
        statistics=statistics,
        per_trial_results=tuple(per_trial),
        selection_frequency=frequency,
        seeds=tuple(seeds),
    )


class _TrialError(Exception):
    """Carries an exception raised by a trial through the worker pool."""

    def __init__(self, error: BaseException):
        super().__init__(error)
        self.error = error


def _guarded(trial: Callable[[int], Any], k: int) -> Any:
    try:
        return trial(k)
    except Exception as e:
        raise _TrialError(e) from e


def run_trials(
    trial: Callable[[int], Any],
    n_trials: int,
    parallel: bool = True,
    n_jobs: Optional[int] = -1,
) -> List[Any]:
    """
    Run ``trial(0), ..., trial(n_trials - 1)`` and return results in index order.

    Trials run on a thread pool when ``parallel`` is True. If the pool
    itself fails, they are re-run sequentially; since every trial owns its
    random state, both paths give the same results. Errors raised by a
    trial are re-raised unchanged.

    Solver convergence warnings are silenced for the whole run from the
    calling thread; workers never touch the warning filters.
    """
    with quiet_solvers():
        if parallel and n_trials > 1 and n_jobs != 1:
            try:
                return list(Parallel(n_jobs=n_jobs, prefer="threads")(
                    delayed(_guarded)(trial, k) for k in range(n_trials)
                ))
            except _TrialError as e:
                raise e.error from None
            except (OSError, RuntimeError) as e:
                logger.warning("Parallel execution failed (%s); running trials sequentially", e)
                warnings.warn(
                    f"Parallel execution failed ({e}); running trials sequentially."
                )
        return [trial(k) for k in range(n_trials)]


def pls_ako(
    X: np.ndarray,
    y: np.ndarray,
    n_ko: int = 25,
    q: float = 0.05,
    method: Union[str, Callable] = 'lasso',
    offset: int = 1,
    parallel: bool = True,
    n_jobs: Optional[int] = -1,
    seed: int = DEFAULT_SEED,
    threshold_abs: Optional[float] = None,
    ncomp: Union[int, str] = 'auto',
    sparsity: float = 0.0,
    nb_list: Optional[Any] = None,
    statistic_kwargs: Optional[dict] = None,
    **knockoff_options
) -> AKOResult:
    """
    Aggregated knockoffs with PLS knockoff generation.

    Runs ``n_ko`` independent knockoff trials and aggregates their
    statistics into one selection, which is far less variable than the
    selection of a single knockoff draw.

    Trial k (1-based) uses knockoffs ``plsko(X, seed=seed + k, ...)``, so
    trials are distinct and reproducible one by one, and its per-trial
    result equals ``plsko_filter(X, y, seed=seed + k, ...)``.

    Parameters
    ----------
    X : array-like of shape (n, p)
        Matrix of predictors.
    y : array-like of shape (n,)
        Response vector.
    n_ko : int, default=25
        Number of knockoff trials.
    q : float, default=0.05
        Target false discovery rate.
    method : str or callable, default='lasso'
        Importance statistic.
    offset : {0, 1}, default=1
        1 for knockoff+, 0 for knockoff.
    parallel : bool, default=True
        Run trials on a thread pool.
    n_jobs : int, default=-1
        Number of worker threads when ``parallel`` is True.
    seed : int, default=1
        Base seed of the trials.
    threshold_abs, ncomp, sparsity, nb_list
        Knockoff options, see :func:`plsko.plsko`.
    statistic_kwargs : dict, optional
        Extra keyword arguments for the statistic.
    **knockoff_options
        Further :class:`plsko.PLSKOConfig` fields.

    Returns
    -------
    AKOResult
        Aggregated selection together with the per-trial results.

    References
    ----------
    Nguyen, Chevalier, Thirion and Arlot, Aggregation of Multiple Knockoffs.
    ICML 2020.
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
    seeds = trial_seeds(seed, n_ko)

    neighborhood = resolve_neighborhood(
        X,
        threshold_abs=config.threshold_abs,
        threshold_q=config.threshold_q,
        nb_list=config.nb_list,
    )
    global_ncomp = resolve_global_ncomp(X, config)

    def trial(k: int) -> KnockoffResult:
        Xk = generate_knockoffs(
            X, neighborhood, config, seed=seeds[k], global_ncomp=global_ncomp
        ).Xk
        return _score_and_select(
            X, Xk, y, statistic, q, offset,
            random_state=_statistic_seed(seeds[k]),
            feature_names=feature_names,
            statistic_kwargs=statistic_kwargs,
        )

    logger.info("Running %d PLS knockoff trials (parallel=%s)", n_ko, parallel)
    per_trial = run_trials(trial, n_ko, parallel=parallel, n_jobs=n_jobs)
    return _aggregate(per_trial, q, offset, feature_names=feature_names, seeds=seeds)


def _digest(a: np.ndarray) -> str:
    return hashlib.sha1(np.ascontiguousarray(a).tobytes()).hexdigest()


def ako_with_ko(
    X: np.ndarray,
    Xk_list: Sequence[np.ndarray],
    y: np.ndarray,
    q: float = 0.05,
    method: Union[str, Callable] = 'lasso',
    offset: int = 1,
    parallel: bool = True,
    n_jobs: Optional[int] = -1,
    seed: int = DEFAULT_SEED,
    statistic_kwargs: Optional[dict] = None,
) -> AKOResult:
    """
    Aggregated knockoffs with caller-supplied knockoff matrices.

    Parameters
    ----------
    X : array-like of shape (n, p)
        Matrix of predictors.
    Xk_list : sequence of array-like of shape (n, p)
        One knockoff matrix per trial.
    y : array-like of shape (n,)
        Response vector.
    q : float, default=0.05
        Target false discovery rate.
    method : str or callable, default='lasso'
        Importance statistic.
    offset : {0, 1}, default=1
        1 for knockoff+, 0 for knockoff.
    parallel : bool, default=True
        Score trials on a thread pool.
    n_jobs : int, default=-1
        Number of worker threads.
    seed : int, default=1
        Base seed of the statistics' random draws.
    statistic_kwargs : dict, optional
        Extra keyword arguments for the statistic.

    Returns
    -------
    AKOResult
        Aggregated selection together with the per-trial results.
    """
    feature_names = feature_names_of(X)
    X = as_design_matrix(X)
    y = _check_response(y, X.shape[0])
    _check_level(q, offset)
    statistic = get_statistic(method)

    if len(Xk_list) == 0:
        raise ConfigurationError("Xk_list must contain at least one knockoff matrix")

    knockoffs = []
    for k, Xk in enumerate(Xk_list):
        Xk = as_design_matrix(Xk, name=f"Xk_list[{k}]")
        if Xk.shape != X.shape:
            raise ConfigurationError(
                f"Knockoff matrix {k} has shape {Xk.shape} but X has shape {X.shape}"
            )
        knockoffs.append(Xk)

    if len({_digest(Xk) for Xk in knockoffs}) < len(knockoffs):
        warnings.warn(
            "Some knockoff matrices are identical; were they generated with "
            "the same seed? Repeated knockoffs do not add information."
        )

    seeds = trial_seeds(seed, len(knockoffs))

    def trial(k: int) -> KnockoffResult:
        return _score_and_select(
            X, knockoffs[k], y, statistic, q, offset,
            random_state=_statistic_seed(seeds[k]),
            feature_names=feature_names,
            statistic_kwargs=statistic_kwargs,
        )

    per_trial = run_trials(trial, len(knockoffs), parallel=parallel, n_jobs=n_jobs)
    return _aggregate(per_trial, q, offset, feature_names=feature_names, seeds=seeds)


def ako_with_w(
    W_list: Union[Sequence[np.ndarray], np.ndarray],
    q: float = 0.05,
    offset: int = 1,
    feature_names: Optional[List[str]] = None,
) -> AKOResult:
    """
    Aggregated knockoffs from precomputed statistics.

    Parameters
    ----------
    W_list : sequence of array-like of shape (p,), or array of shape (n_ko, p)
        Statistics of each trial.
    q : float, default=0.05
        Target false discovery rate.
    offset : {0, 1}, default=1
        1 for knockoff+, 0 for knockoff.
    feature_names : list of str, optional
        Names of the variables.

    Returns
    -------
    AKOResult
        Aggregated selection together with the per-trial results.
    """
    _check_level(q, offset)
    if len(W_list) == 0:
        raise ConfigurationError("W_list must contain at least one statistic vector")

    per_trial = [
        ko_with_w(W, q=q, offset=offset, feature_names=feature_names) for W in W_list
    ]
    p = len(per_trial[0].statistic)
    if any(len(r.statistic) != p for r in per_trial):
        raise ConfigurationError("All statistic vectors must have the same length")

    return _aggregate(per_trial, q, offset, feature_names=feature_names)
