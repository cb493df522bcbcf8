"""Options for PLS knockoff generation."""

from dataclasses import dataclass, fields
from typing import Optional, Union, Any, Callable
import numbers

from .exceptions import ConfigurationError

NCOMP_MODES = ('auto', 'global')
RESIDUAL_MODES = ('permute', 'gaussian')
CRITERIA = ('PC_p1', 'PC_p2', 'PC_p3')


@dataclass(frozen=True)
class PLSKOConfig:
    """
    Validated options for the PLS knockoff generator.

    Attributes
    ----------
    threshold_abs : float, optional
        Absolute correlation cutoff for neighborhoods. 0 connects every
        pair of variables. When None, ``threshold_q`` is used.
    threshold_q : float, default=0.8
        Quantile of the off-diagonal absolute correlations used as the
        cutoff when ``threshold_abs`` is None.
    ncomp : int or {'auto', 'global'}, default='auto'
        Number of PLS components. 'auto' selects it per variable,
        'global' selects it once from the whole design matrix.
    min_ncomp : int, default=2
        Floor applied to automatically selected component counts.
    criterion : str or callable, default='PC_p1'
        Information criterion used by the component selector.
    sparsity : float, default=0.0
        Fraction of PLS weights shrunk to zero per component, in [0, 1).
    nb_list : list, array or Neighborhood, optional
        Explicit neighborhoods. Overrides the correlation rule.
    residual : {'permute', 'gaussian'}, default='permute'
        How the residual part of each knockoff column is randomized.
    """
    threshold_abs: Optional[float] = None
    threshold_q: float = 0.8
    ncomp: Union[int, str] = 'auto'
    min_ncomp: int = 2
    criterion: Union[str, Callable] = 'PC_p1'
    sparsity: float = 0.0
    nb_list: Optional[Any] = None
    residual: str = 'permute'

    def __post_init__(self):
        if self.threshold_abs is not None:
            if not isinstance(self.threshold_abs, numbers.Real) or not 0 <= self.threshold_abs <= 1:
                raise ConfigurationError(
                    f"threshold_abs must lie in [0, 1], got {self.threshold_abs!r}"
                )

        if not isinstance(self.threshold_q, numbers.Real) or not 0 <= self.threshold_q <= 1:
            raise ConfigurationError(
                f"threshold_q must lie in [0, 1], got {self.threshold_q!r}"
            )

        if isinstance(self.ncomp, str):
            if self.ncomp not in NCOMP_MODES:
                raise ConfigurationError(
                    f"ncomp must be a positive integer or one of {NCOMP_MODES}, "
                    f"got '{self.ncomp}'"
                )
        elif isinstance(self.ncomp, bool) or not isinstance(self.ncomp, numbers.Integral) or self.ncomp < 1:
            raise ConfigurationError(
                f"ncomp must be a positive integer or one of {NCOMP_MODES}, "
                f"got {self.ncomp!r}"
            )

        if isinstance(self.min_ncomp, bool) or not isinstance(self.min_ncomp, numbers.Integral) or self.min_ncomp < 1:
            raise ConfigurationError(
                f"min_ncomp must be a positive integer, got {self.min_ncomp!r}"
            )

        if not callable(self.criterion) and self.criterion not in CRITERIA:
            raise ConfigurationError(
                f"criterion must be callable or one of {CRITERIA}, got {self.criterion!r}"
            )

        if not isinstance(self.sparsity, numbers.Real) or not 0 <= self.sparsity < 1:
            raise ConfigurationError(
                f"sparsity must lie in [0, 1), got {self.sparsity!r}"
            )

        if self.residual not in RESIDUAL_MODES:
            raise ConfigurationError(
                f"residual must be one of {RESIDUAL_MODES}, got '{self.residual}'"
            )

    @classmethod
    def from_kwargs(cls, **kwargs) -> 'PLSKOConfig':
        """
        Build a configuration from keyword arguments.

        None values fall back to the defaults, except for
        ``threshold_abs`` and ``nb_list`` where None is meaningful.
        Unknown keys raise ConfigurationError.
        """
        names = {f.name for f in fields(cls)}
        unknown = sorted(set(kwargs) - names)
        if unknown:
            raise ConfigurationError(
                f"Unknown knockoff option(s): {', '.join(unknown)}"
            )
        options = {
            key: value for key, value in kwargs.items()
            if value is not None or key in ('threshold_abs', 'nb_list')
        }
        return cls(**options)
