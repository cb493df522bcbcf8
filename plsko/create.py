"""PLS knockoff construction."""

from dataclasses import dataclass
from typing import Optional, Union, Any
import logging
import warnings
import numpy as np
from scipy import linalg

from .config import PLSKOConfig
from .exceptions import FitDegeneracyWarning
from .neighborhood import Neighborhood, resolve_neighborhood
from .pls import SparsePLSRegression, select_ncomp
from .utils import as_design_matrix, variance_matched_noise

logger = logging.getLogger(__name__)

DEFAULT_SEED = 1


@dataclass(frozen=True)
class PLSKnockoffs:
    """
    Knockoff matrix together with the details of its construction.

    Attributes
    ----------
    Xk : np.ndarray of shape (n, p)
        Knockoff variables.
    neighborhood : Neighborhood
        Neighborhoods the regressions were fitted on.
    ncomp : np.ndarray of shape (p,)
        Number of PLS components used for each variable (0 for columns
        that fell back to noise).
    degenerate : np.ndarray
        Indices of columns generated by the noise fallback.
    seed : int or None
        Seed the knockoffs were drawn with.
    """
    Xk: np.ndarray
    neighborhood: Neighborhood
    ncomp: np.ndarray
    degenerate: np.ndarray
    seed: Optional[Any] = None


def _fit_column(
    x: np.ndarray,
    Z: np.ndarray,
    config: PLSKOConfig,
    global_ncomp: Optional[int],
):
    """
    Fit the sparse PLS regression of one variable on its regressors.

    Returns the fitted model, or None when no component can be extracted.
    """
    n, m = Z.shape
    kcap = min(m, n - 1)
    if kcap < 1:
        return None

    if config.ncomp == 'auto':
        k = select_ncomp(
            Z, y=x,
            criterion=config.criterion,
            min_ncomp=config.min_ncomp,
            sparsity=config.sparsity,
        )
    elif config.ncomp == 'global':
        k = min(global_ncomp, kcap)
    else:
        k = min(config.ncomp, kcap)

    if k < 1:
        return None

    fit = SparsePLSRegression(n_components=k, sparsity=config.sparsity).fit(Z, x)
    if fit.n_components_ == 0:
        return None
    return fit


def resolve_global_ncomp(X: np.ndarray, config: PLSKOConfig) -> Optional[int]:
    """Component count shared by all variables, or None unless ncomp='global'."""
    if config.ncomp != 'global':
        return None
    return max(
        select_ncomp(X, criterion=config.criterion, min_ncomp=config.min_ncomp), 1
    )


def generate_knockoffs(
    X: np.ndarray,
    neighborhood: Neighborhood,
    config: PLSKOConfig,
    seed: Union[int, np.random.SeedSequence, np.random.Generator, None] = DEFAULT_SEED,
    global_ncomp: Optional[int] = None,
) -> PLSKnockoffs:
    """
    Generate one PLS knockoff matrix for a resolved neighborhood.

    Variables are processed in column order. Variable i is regressed on its
    original neighbors and on the knockoffs already generated for neighbors
    j < i. The knockoff is the fitted value plus a randomized residual.

    Parameters
    ----------
    X : np.ndarray of shape (n, p)
        Matrix of original variables.
    neighborhood : Neighborhood
        Regressor sets of the variables.
    config : PLSKOConfig
        Generation options.
    seed : int, SeedSequence, Generator or None, default=1
        Seed of the random draws.
    global_ncomp : int, optional
        Component count for ``config.ncomp == 'global'``; computed from X
        when not given.

    Returns
    -------
    PLSKnockoffs
        Knockoffs and construction details.
    """
    X = as_design_matrix(X)
    n, p = X.shape
    rng = np.random.default_rng(seed)

    if global_ncomp is None:
        global_ncomp = resolve_global_ncomp(X, config)

    Xk = np.empty((n, p))
    ncomp_used = np.zeros(p, dtype=int)
    degenerate = []

    for i in range(p):
        x = X[:, i]
        nb = neighborhood[i]
        prev = nb[nb < i]

        fit = None
        reason = "empty neighborhood"
        if nb.size > 0:
            Z = np.hstack([X[:, nb], Xk[:, prev]])
            reason = "regressors have rank 0"
            try:
                fit = _fit_column(x, Z, config, global_ncomp)
            except linalg.LinAlgError as e:
                fit = None
                reason = f"PLS fit failed ({e})"

        if fit is not None:
            fitted = fit.predict(Z)
            resid = x - fitted
            if np.all(np.isfinite(fitted)):
                if config.residual == 'permute':
                    Xk[:, i] = fitted + rng.permutation(resid)
                else:
                    Xk[:, i] = fitted + rng.normal(0.0, resid.std(), size=n)
                ncomp_used[i] = fit.n_components_
                continue
            reason = "non-finite fitted values"

        logger.debug("Variable %d: %s, using variance-matched noise", i, reason)
        Xk[:, i] = variance_matched_noise(x, rng)
        degenerate.append(i)

    if degenerate:
        warnings.warn(
            f"{len(degenerate)} of {p} knockoff columns fell back to "
            f"variance-matched noise (variables {degenerate[:10]}"
            f"{', ...' if len(degenerate) > 10 else ''}).",
            FitDegeneracyWarning,
        )

    return PLSKnockoffs(
        Xk=Xk,
        neighborhood=neighborhood,
        ncomp=ncomp_used,
        degenerate=np.array(degenerate, dtype=int),
        seed=seed if isinstance(seed, (int, np.integer)) else None,
    )


def plsko(
    X: np.ndarray,
    threshold_abs: Optional[float] = None,
    ncomp: Union[int, str] = 'auto',
    sparsity: float = 0.0,
    nb_list: Optional[Any] = None,
    seed: Union[int, np.random.SeedSequence, np.random.Generator, None] = DEFAULT_SEED,
    threshold_q: float = 0.8,
    min_ncomp: int = 2,
    criterion: str = 'PC_p1',
    residual: str = 'permute',
    return_details: bool = False,
) -> Union[np.ndarray, PLSKnockoffs]:
    """
    Sample PLS knockoff variables.

    Each variable is regressed with (sparse) partial least squares on a
    neighborhood of correlated variables; its knockoff is the fitted value
    plus a randomly permuted residual. Conditioning on neighborhoods
    instead of the full joint distribution keeps the construction
    tractable when p > n.

    Parameters
    ----------
    X : array-like of shape (n, p)
        Matrix of original variables.
    threshold_abs : float, optional
        Absolute correlation cutoff defining neighborhoods; 0 connects all
        variables. Default: the ``threshold_q`` quantile of the absolute
        correlations.
    ncomp : int or {'auto', 'global'}, default='auto'
        Number of PLS components, or how to select it.
    sparsity : float, default=0.0
        Fraction of PLS weights set to zero per component.
    nb_list : list of index sets or (p, p) 0/1 array, optional
        Explicit neighborhoods.
    seed : int, default=1
        Seed of the random draws. The same seed and inputs always give
        the same knockoffs, so vary it when several independent knockoff
        copies are needed (see :func:`plsko.pls_ako`).
    threshold_q : float, default=0.8
        Quantile used for the correlation cutoff.
    min_ncomp : int, default=2
        Floor for automatically selected component counts.
    criterion : {'PC_p1', 'PC_p2', 'PC_p3'} or callable, default='PC_p1'
        Criterion for automatic component selection.
    residual : {'permute', 'gaussian'}, default='permute'
        Randomization of the residual part.
    return_details : bool, default=False
        Return a :class:`PLSKnockoffs` record instead of the matrix.

    Returns
    -------
    np.ndarray of shape (n, p) or PLSKnockoffs
        Knockoff variables.

    Examples
    --------
    >>> from plsko import plsko, simulate_ar1
    >>> data = simulate_ar1(100, 150, rho=0.5, seed=0)
    >>> Xk = plsko(data['X'], seed=3)
    >>> Xk.shape
    (100, 150)
    """
    config = PLSKOConfig(
        threshold_abs=threshold_abs,
        threshold_q=threshold_q,
        ncomp=ncomp,
        min_ncomp=min_ncomp,
        criterion=criterion,
        sparsity=sparsity,
        nb_list=nb_list,
        residual=residual,
    )
    X = as_design_matrix(X)
    neighborhood = resolve_neighborhood(
        X,
        threshold_abs=config.threshold_abs,
        threshold_q=config.threshold_q,
        nb_list=config.nb_list,
    )
    result = generate_knockoffs(X, neighborhood, config, seed=seed)

    if return_details:
        return result
    return result.Xk
