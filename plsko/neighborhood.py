"""Neighborhoods of correlated variables used to build knockoffs."""

from dataclasses import dataclass
from typing import Optional, List, Any
import logging
import warnings
import numpy as np

from .exceptions import ConfigurationError
from .utils import as_design_matrix

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Neighborhood:
    """
    Regressor sets for every variable.

    Attributes
    ----------
    adjacency : np.ndarray of shape (p, p), dtype bool
        ``adjacency[i, j]`` is True when variable j is used to predict
        variable i. The diagonal is always False.
    threshold : float, optional
        Absolute correlation cutoff the neighborhood was derived from,
        or None for explicit neighborhoods.
    """
    adjacency: np.ndarray
    threshold: Optional[float] = None

    def __post_init__(self):
        adjacency = np.array(self.adjacency, dtype=bool)
        adjacency.setflags(write=False)
        object.__setattr__(self, 'adjacency', adjacency)

    def __len__(self) -> int:
        return self.adjacency.shape[0]

    def __getitem__(self, i: int) -> np.ndarray:
        return np.flatnonzero(self.adjacency[i])

    @property
    def p(self) -> int:
        return self.adjacency.shape[0]

    @property
    def sizes(self) -> np.ndarray:
        """Number of neighbors of each variable."""
        return self.adjacency.sum(axis=1)

    @property
    def is_symmetric(self) -> bool:
        return bool(np.array_equal(self.adjacency, self.adjacency.T))

    @property
    def is_full(self) -> bool:
        """True when every variable neighbors every other variable."""
        return bool(np.all(self.sizes == self.p - 1))

    def to_list(self) -> List[List[int]]:
        """Neighborhoods as a list of index lists."""
        return [self[i].tolist() for i in range(self.p)]

    def __repr__(self) -> str:
        sizes = self.sizes
        return (
            f"Neighborhood(p={self.p}, "
            f"mean_size={sizes.mean() if sizes.size else 0:.1f}, "
            f"empty={int(np.sum(sizes == 0))}, "
            f"symmetric={self.is_symmetric})"
        )


def correlation_matrix(X: np.ndarray) -> np.ndarray:
    """
    Sample correlation of the columns of X.

    Constant columns get zero correlation with every other column.
    """
    X = np.asarray(X, dtype=np.float64)
    Xc = X - X.mean(axis=0)
    norms = np.sqrt(np.sum(Xc ** 2, axis=0))
    constant = norms == 0
    norms[constant] = 1.0
    Xn = Xc / norms
    C = Xn.T @ Xn
    C = (C + C.T) / 2
    C[constant, :] = 0.0
    C[:, constant] = 0.0
    np.fill_diagonal(C, 1.0)
    return np.clip(C, -1.0, 1.0)


def _from_matrix(nb: np.ndarray, p: int) -> np.ndarray:
    if nb.ndim != 2 or nb.shape[0] != nb.shape[1]:
        raise ConfigurationError(
            f"Adjacency matrix must be square, got shape {nb.shape}"
        )
    if nb.shape[0] != p:
        raise ConfigurationError(
            f"Adjacency matrix has shape {nb.shape} but X has {p} variables"
        )
    if not np.all(np.isin(nb, (0, 1))):
        raise ConfigurationError("Adjacency matrix values must be 0 or 1")
    if np.any(np.diag(nb) != 0):
        i = int(np.flatnonzero(np.diag(nb))[0])
        raise ConfigurationError(
            f"Variable {i} is listed in its own neighborhood"
        )
    return nb.astype(bool)


def _from_list(nb_list, p: int) -> np.ndarray:
    if len(nb_list) != p:
        raise ConfigurationError(
            f"Neighborhood list has {len(nb_list)} entries but X has {p} variables"
        )
    adjacency = np.zeros((p, p), dtype=bool)
    for i, members in enumerate(nb_list):
        if members is None:
            continue
        idx = np.asarray(list(members))
        if idx.size == 0:
            continue
        if not np.issubdtype(idx.dtype, np.integer):
            raise ConfigurationError(
                f"Neighborhood of variable {i} must contain integer indices"
            )
        if np.any(idx < 0) or np.any(idx >= p):
            raise ConfigurationError(
                f"Neighborhood of variable {i} has indices outside [0, {p})"
            )
        if np.any(idx == i):
            raise ConfigurationError(
                f"Variable {i} is listed in its own neighborhood"
            )
        adjacency[i, idx] = True
    return adjacency


def explicit_neighborhood(nb_list: Any, p: int) -> Neighborhood:
    """
    Normalize a caller-supplied neighborhood structure.

    Parameters
    ----------
    nb_list : list of index collections, array of shape (p, p), or Neighborhood
        Either ``nb_list[i]`` lists the neighbors of variable i, or
        ``nb_list[i, j] == 1`` marks j as a neighbor of i. Lists are always
        read as index collections; pass adjacency matrices as arrays.
    p : int
        Number of variables.

    Returns
    -------
    Neighborhood
        Normalized neighborhood.
    """
    if isinstance(nb_list, Neighborhood):
        if nb_list.p != p:
            raise ConfigurationError(
                f"Neighborhood covers {nb_list.p} variables but X has {p}"
            )
        return nb_list

    if isinstance(nb_list, np.ndarray) and nb_list.dtype != object:
        adjacency = _from_matrix(nb_list, p)
    elif isinstance(nb_list, (list, tuple)):
        adjacency = _from_list(nb_list, p)
    else:
        raise ConfigurationError(
            "nb_list must be a list of index sets, a (p, p) 0/1 matrix "
            f"or a Neighborhood, got {type(nb_list).__name__}"
        )

    neighborhood = Neighborhood(adjacency=adjacency)
    if not neighborhood.is_symmetric:
        warnings.warn(
            "The supplied neighborhoods are not symmetric; knockoffs are "
            "designed for symmetric neighborhoods (i in N(j) iff j in N(i))."
        )
        logger.info("Using asymmetric user-supplied neighborhoods: %r", neighborhood)
    return neighborhood


def resolve_neighborhood(
    X: np.ndarray,
    threshold_abs: Optional[float] = None,
    threshold_q: float = 0.8,
    nb_list: Optional[Any] = None,
) -> Neighborhood:
    """
    Derive the neighborhood of every variable.

    Without ``nb_list``, variables i != j are neighbors when the absolute
    sample correlation between them is at least the cutoff. The cutoff is
    ``threshold_abs`` when given, otherwise the ``threshold_q`` quantile of
    the off-diagonal absolute correlations. ``threshold_abs=0`` connects
    every pair, which amounts to ordinary PLS on all other variables.

    Parameters
    ----------
    X : array-like of shape (n, p)
        Matrix of original variables.
    threshold_abs : float, optional
        Absolute correlation cutoff in [0, 1].
    threshold_q : float, default=0.8
        Quantile used when ``threshold_abs`` is None.
    nb_list : list, array or Neighborhood, optional
        Explicit neighborhoods; see :func:`explicit_neighborhood`.

    Returns
    -------
    Neighborhood
        Normalized neighborhood structure.
    """
    X = as_design_matrix(X)
    p = X.shape[1]

    if nb_list is not None:
        return explicit_neighborhood(nb_list, p)

    if threshold_abs is not None and not 0 <= threshold_abs <= 1:
        raise ConfigurationError(
            f"threshold_abs must lie in [0, 1], got {threshold_abs}"
        )
    if not 0 <= threshold_q <= 1:
        raise ConfigurationError(
            f"threshold_q must lie in [0, 1], got {threshold_q}"
        )

    off_diagonal = ~np.eye(p, dtype=bool)

    if threshold_abs == 0:
        return Neighborhood(adjacency=off_diagonal, threshold=0.0)

    abs_corr = np.abs(correlation_matrix(X))

    if threshold_abs is None:
        if p < 2:
            threshold = 1.0
        else:
            threshold = float(np.quantile(abs_corr[off_diagonal], threshold_q))
    else:
        threshold = float(threshold_abs)

    adjacency = (abs_corr >= threshold) & off_diagonal
    neighborhood = Neighborhood(adjacency=adjacency, threshold=threshold)
    logger.debug("Correlation cutoff %.4f gives %r", threshold, neighborhood)
    return neighborhood
