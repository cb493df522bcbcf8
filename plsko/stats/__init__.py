"""Importance statistics for the knockoff filter.

A statistic is any callable ``f(X, X_k, y) -> W`` returning one signed
value per original variable, large and positive when the original variable
looks more important than its knockoff. Statistics must have the sign-flip
property: swapping an original variable with its knockoff flips the sign of
its statistic. The built-in statistics obtain it by randomly swapping
columns before fitting.

Statistics are looked up by name in a registry, so custom statistics can be
plugged in without touching the filter code::

    >>> from plsko.stats import register_statistic
    >>> register_statistic("corr", lambda X, Xk, y: abs(X.T @ y) - abs(Xk.T @ y))
"""

from typing import Callable, Dict, List, Union

from ..exceptions import ConfigurationError, ScorerContractViolation

# Lasso statistics
from .lasso import (
    stat_lasso_coefdiff,
    stat_lasso_lambdasmax,
    stat_lasso_coefdiff_bin,
)

# Random forest
from .random_forest import stat_random_forest

# Base utilities
from .base import (
    swap_columns,
    correct_for_swap,
    compute_difference_stat,
    compute_signed_max_stat,
    compute_statistic,
    validate_statistic,
    quiet_solvers,
)

_REGISTRY: Dict[str, Callable] = {}


def register_statistic(name: str, func: Callable, overwrite: bool = False) -> None:
    """
    Register an importance statistic under a method name.

    Parameters
    ----------
    name : str
        Method identifier, e.g. ``"lasso"``.
    func : callable
        ``func(X, X_k, y, **kwargs) -> W`` honouring the sign-flip property.
    overwrite : bool, default=False
        Whether an existing registration may be replaced.
    """
    if not callable(func):
        raise ConfigurationError(f"statistic '{name}' must be callable")
    if name in _REGISTRY and not overwrite:
        raise ConfigurationError(
            f"A statistic named '{name}' is already registered; "
            "pass overwrite=True to replace it"
        )
    _REGISTRY[name] = func


def get_statistic(method: Union[str, Callable]) -> Callable:
    """
    Resolve a method name (or pass through a callable).

    Raises
    ------
    ScorerContractViolation
        If the name is not registered.
    """
    if callable(method):
        return method
    try:
        return _REGISTRY[method]
    except KeyError:
        raise ScorerContractViolation(
            f"Unknown statistic '{method}'. Available: {available_statistics()}"
        )


def available_statistics() -> List[str]:
    """Names of the registered statistics."""
    return sorted(_REGISTRY)


register_statistic("lasso", stat_lasso_coefdiff)
register_statistic("lasso.max.lambda", stat_lasso_lambdasmax)
register_statistic("lasso.logistic", stat_lasso_coefdiff_bin)
register_statistic("RF", stat_random_forest)

__all__ = [
    # Registry
    "register_statistic",
    "get_statistic",
    "available_statistics",
    # Lasso
    "stat_lasso_coefdiff",
    "stat_lasso_lambdasmax",
    "stat_lasso_coefdiff_bin",
    # Random forest
    "stat_random_forest",
    # Base utilities
    "swap_columns",
    "correct_for_swap",
    "compute_difference_stat",
    "compute_signed_max_stat",
    "compute_statistic",
    "validate_statistic",
    "quiet_solvers",
]
