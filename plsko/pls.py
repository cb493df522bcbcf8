"""Sparse PLS regression and selection of the number of components."""

from typing import Optional, Union, Callable
import numpy as np
from scipy import linalg
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.utils.validation import check_is_fitted

from .exceptions import ConfigurationError
from .utils import standardize, matrix_rank

# Relative size under which a score vector or residual block counts as zero
_RANK_TOL = 1e-10


def _sparse_weights(w: np.ndarray, sparsity: float) -> np.ndarray:
    """
    Soft-threshold a weight vector so that a fraction of it is zero.

    The threshold is the ``floor(sparsity * m)``-th smallest absolute
    weight, so at least that many weights become exactly zero. The
    largest weight always survives.
    """
    m = w.shape[0]
    n_zero = min(int(np.floor(sparsity * m)), m - 1)
    if n_zero <= 0:
        return w

    abs_w = np.abs(w)
    lam = np.sort(abs_w)[n_zero - 1]
    w_sparse = np.sign(w) * np.maximum(abs_w - lam, 0.0)

    if not np.any(w_sparse):
        j = int(np.argmax(abs_w))
        w_sparse[j] = w[j]
    return w_sparse


class SparsePLSRegression(RegressorMixin, BaseEstimator):
    """
    PLS1 regression with soft-thresholded weight vectors.

    Components are extracted one at a time: the weight vector is the
    covariance between the (deflated) predictors and the response,
    shrunk so that a ``sparsity`` fraction of its entries is exactly
    zero, and both blocks are deflated by the resulting score vector.
    Extraction stops early when the predictor block is exhausted, so
    ``n_components_`` never exceeds the rank of X.

    Parameters
    ----------
    n_components : int, default=2
        Maximum number of latent components.
    sparsity : float, default=0.0
        Fraction of weights set to zero per component, in [0, 1).
        0 gives ordinary PLS1.
    scale : bool, default=True
        Whether to scale predictors to unit variance.

    Attributes
    ----------
    n_components_ : int
        Number of components actually extracted.
    x_weights_ : np.ndarray of shape (m, n_components_)
    x_loadings_ : np.ndarray of shape (m, n_components_)
    y_loadings_ : np.ndarray of shape (n_components_,)
    coef_ : np.ndarray of shape (m,)
        Coefficients on the original scale of X.
    intercept_ : float
    x_residual_ss_ : np.ndarray of shape (n_components_ + 1,)
        Residual sum of squares of the scaled predictor block after
        0, 1, ... components.
    y_residual_ss_ : np.ndarray of shape (n_components_ + 1,)
        Residual sum of squares of the centered response.
    """

    def __init__(self, n_components: int = 2, sparsity: float = 0.0, scale: bool = True):
        self.n_components = n_components
        self.sparsity = sparsity
        self.scale = scale

    def fit(self, X, y):
        X = np.asarray(X, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64).ravel()
        n, m = X.shape

        if self.n_components < 1:
            raise ConfigurationError(
                f"n_components must be positive, got {self.n_components}"
            )
        if not 0 <= self.sparsity < 1:
            raise ConfigurationError(
                f"sparsity must lie in [0, 1), got {self.sparsity}"
            )
        if y.shape[0] != n:
            raise ConfigurationError(
                f"Length of y ({y.shape[0]}) must match number of rows in X ({n})"
            )

        self.x_mean_ = X.mean(axis=0)
        self.y_mean_ = y.mean()
        if self.scale:
            x_std = X.std(axis=0)
            x_std[x_std == 0] = 1.0
        else:
            x_std = np.ones(m)
        self.x_std_ = x_std

        Xk = (X - self.x_mean_) / x_std
        yk = y - self.y_mean_

        x_ss0 = np.sum(Xk ** 2)
        weights, loadings, y_loadings = [], [], []
        x_ss, y_ss = [x_ss0], [np.sum(yk ** 2)]

        for _ in range(self.n_components):
            if x_ss[-1] <= _RANK_TOL * x_ss0 or x_ss0 == 0:
                break

            w = Xk.T @ yk
            if not np.any(w):
                break
            w = _sparse_weights(w, self.sparsity)
            w = w / np.sqrt(np.sum(w ** 2))

            t = Xk @ w
            tt = t @ t
            if tt <= _RANK_TOL * x_ss0:
                break

            p_load = Xk.T @ t / tt
            c = yk @ t / tt

            # Deflate both blocks by the new score vector
            Xk = Xk - np.outer(t, p_load)
            yk = yk - c * t

            weights.append(w)
            loadings.append(p_load)
            y_loadings.append(c)
            x_ss.append(np.sum(Xk ** 2))
            y_ss.append(np.sum(yk ** 2))

        K = len(weights)
        self.n_components_ = K
        self.x_residual_ss_ = np.array(x_ss)
        self.y_residual_ss_ = np.array(y_ss)

        if K == 0:
            self.x_weights_ = np.zeros((m, 0))
            self.x_loadings_ = np.zeros((m, 0))
            self.y_loadings_ = np.zeros(0)
            self.coef_ = np.zeros(m)
        else:
            W = np.column_stack(weights)
            P = np.column_stack(loadings)
            c = np.array(y_loadings)
            # Rotations map scaled X directly to scores: R = W (P'W)^-1
            R = W @ linalg.solve(P.T @ W, np.eye(K))
            self.x_weights_ = W
            self.x_loadings_ = P
            self.y_loadings_ = c
            self.coef_ = (R @ c) / x_std

        self.intercept_ = self.y_mean_ - self.x_mean_ @ self.coef_
        return self

    def predict(self, X):
        check_is_fitted(self, 'coef_')
        X = np.asarray(X, dtype=np.float64)
        return X @ self.coef_ + self.intercept_


def _penalty(criterion: str, n: int, m: int) -> float:
    nm = n * m
    if criterion == 'PC_p1':
        return (n + m) / nm * np.log(nm / (n + m))
    if criterion == 'PC_p2':
        return (n + m) / nm * np.log(min(n, m))
    if criterion == 'PC_p3':
        c2 = min(n, m)
        return np.log(c2) / c2
    raise ConfigurationError(
        f"Unknown criterion '{criterion}'. Use 'PC_p1', 'PC_p2', 'PC_p3' or a callable."
    )


def default_kmax(n: int, m: int) -> int:
    """
    Largest component count scanned by default, ``8 * (min(n, m) / 100) ** (1/4)``.

    This is the usual choice for Bai & Ng criteria. It keeps V(kmax) away
    from zero when there are about as many regressors as samples.
    """
    return max(1, int(8 * (min(n, m) / 100) ** 0.25))


def information_criterion(
    V: np.ndarray,
    n: int,
    m: int,
    criterion: str = 'PC_p1',
) -> np.ndarray:
    """
    Bai & Ng information criterion for k = 0, 1, ..., len(V) - 1.

    ``score(k) = V(k) + k * V(kmax) * g(n, m)`` where V(k) is the residual
    variance after k components and kmax = len(V) - 1.

    References
    ----------
    Bai and Ng, Determining the number of factors in approximate factor
    models. Econometrica 70 (2002), no. 1, 191--221.
    """
    V = np.asarray(V, dtype=np.float64)
    kmax = V.shape[0] - 1
    sigma2 = V[kmax]
    k = np.arange(kmax + 1)
    return V + k * sigma2 * _penalty(criterion, n, m)


def select_ncomp(
    X: np.ndarray,
    neighborhood_i: Optional[np.ndarray] = None,
    y: Optional[np.ndarray] = None,
    criterion: Union[str, Callable] = 'PC_p1',
    min_ncomp: int = 2,
    sparsity: float = 0.0,
    kmax: Optional[int] = None,
) -> int:
    """
    Choose the number of latent components for a regression.

    Evaluates a penalized residual variance score over k = 1..kmax with
    ``kmax = min(#regressors, n - 1, rank, kmax)`` and returns the
    minimizer, floored at ``min_ncomp`` and capped at kmax.

    Parameters
    ----------
    X : array-like of shape (n, m)
        Matrix holding the regressors.
    neighborhood_i : array-like of int, optional
        Columns of X used as regressors. Default: all columns.
    y : array-like of shape (n,), optional
        Target of the regression. When given, V(k) is the pooled residual
        variance of the scaled regressors and target after k sparse PLS
        components; otherwise V(k) is the PCA residual variance of the
        scaled regressors.
    criterion : {'PC_p1', 'PC_p2', 'PC_p3'} or callable, default='PC_p1'
        Callables receive ``(V, n, m)`` with ``V`` of length kmax + 1 and
        return one score per k in 0..kmax.
    min_ncomp : int, default=2
        Floor on the result.
    sparsity : float, default=0.0
        Sparsity of the PLS fit used when y is given.
    kmax : int, optional
        Largest component count scanned. Default: :func:`default_kmax`.

    Returns
    -------
    int
        Number of components; 0 only when the regressors have rank 0.
    """
    if min_ncomp < 1:
        raise ConfigurationError(f"min_ncomp must be positive, got {min_ncomp}")
    if not callable(criterion):
        _penalty(criterion, 2, 2)

    X = np.asarray(X, dtype=np.float64)
    Z = X if neighborhood_i is None else X[:, np.asarray(neighborhood_i, dtype=int)]
    n, m = Z.shape

    if kmax is None:
        kmax = default_kmax(n, m)
    elif kmax < 1:
        raise ConfigurationError(f"kmax must be positive, got {kmax}")

    Zs = standardize(Z)
    kmax = min(kmax, m, n - 1, matrix_rank(Zs))
    if kmax <= 0:
        return 0

    if y is None:
        eig = linalg.svdvals(Zs) ** 2
        tail = np.concatenate([np.cumsum(eig[::-1])[::-1], [0.0]])
        V = tail[:kmax + 1] / (n * m)
    else:
        y = np.asarray(y, dtype=np.float64).ravel()
        y_var = y.var()
        if y_var == 0:
            return min(min_ncomp, kmax)
        fit = SparsePLSRegression(n_components=kmax, sparsity=sparsity).fit(Z, y)
        if fit.n_components_ == 0:
            return 0
        kmax = fit.n_components_
        V = (fit.x_residual_ss_ + fit.y_residual_ss_ / y_var) / (n * (m + 1))

    if callable(criterion):
        scores = np.asarray(criterion(V, n, m), dtype=np.float64)
        if scores.shape != V.shape:
            raise ConfigurationError(
                f"criterion must return {V.shape[0]} scores, got shape {scores.shape}"
            )
    else:
        scores = information_criterion(V, n, m, criterion)

    best = int(np.argmin(scores[1:])) + 1
    return min(max(best, min_ncomp), kmax)
