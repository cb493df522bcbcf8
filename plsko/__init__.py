"""
PLS Knockoffs for Controlled Variable Selection.

This package implements knockoff-based variable selection with false
discovery rate (FDR) control for high-dimensional data such as omics
measurements, where there are more variables than samples and variables
are strongly correlated with their neighbors.

Knockoff copies are generated variable by variable with (sparse) partial
least squares regressions on neighborhoods of correlated variables
(PLSKO). Variables that are clearly more important than their knockoffs are
selected with the knockoff+ threshold, and the aggregated knockoff
procedure (AKO) combines several knockoff draws into one stable selection.

References
----------
Barber and Candes, Controlling the false discovery rate via knockoffs.
Ann. Statist. 43 (2015), no. 5, 2055--2085.

Candes et al., Panning for Gold: Model-free Knockoffs for High-dimensional
Controlled Variable Selection, arXiv:1610.02351 (2016).

Nguyen, Chevalier, Thirion and Arlot, Aggregation of Multiple Knockoffs.
ICML 2020.

Examples
--------
>>> from plsko import plsko_filter, pls_ako, simulate_ar1, fdp
>>> data = simulate_ar1(n=100, p=150, rho=0.5, k=25, seed=0)
>>> result = plsko_filter(data['X'], data['y'], q=0.1)
>>> print(result.selected)
>>> ako = pls_ako(data['X'], data['y'], n_ko=10, q=0.1)
>>> print(fdp(ako, data['nonzero']))
"""

import logging

__version__ = "0.1.0"

# Configuration and errors
from .config import PLSKOConfig
from .exceptions import (
    ConfigurationError,
    ScorerContractViolation,
    FitDegeneracyWarning,
)

# Neighborhoods and component selection
from .neighborhood import (
    Neighborhood,
    resolve_neighborhood,
    correlation_matrix,
)
from .pls import (
    SparsePLSRegression,
    select_ncomp,
)

# Knockoff construction
from .create import (
    plsko,
    generate_knockoffs,
    PLSKnockoffs,
)

# Single-run filter
from .filter import (
    knockoff_threshold,
    ko_with_w,
    ko_filter,
    plsko_filter,
    SelectionResult,
    KnockoffResult,
)

# Aggregated knockoffs
from .aggregate import (
    pls_ako,
    ako_with_ko,
    ako_with_w,
    aggregate_statistics,
    AKOResult,
)

# Utility functions
from .utils import (
    simulate_ar1,
    fdp,
    power,
    normc,
    standardize,
    trial_seeds,
)

# Statistics (import submodule)
from . import stats
from .stats import register_statistic, available_statistics

# Names used by the R package
plsAKO = pls_ako
ko_withW = ko_with_w
AKO_withKO = ako_with_ko
AKO_withW = ako_with_w

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Version
    "__version__",
    # Configuration and errors
    "PLSKOConfig",
    "ConfigurationError",
    "ScorerContractViolation",
    "FitDegeneracyWarning",
    # Neighborhoods and components
    "Neighborhood",
    "resolve_neighborhood",
    "correlation_matrix",
    "SparsePLSRegression",
    "select_ncomp",
    # Knockoff construction
    "plsko",
    "generate_knockoffs",
    "PLSKnockoffs",
    # Filter
    "knockoff_threshold",
    "ko_with_w",
    "ko_filter",
    "plsko_filter",
    "SelectionResult",
    "KnockoffResult",
    # Aggregation
    "pls_ako",
    "ako_with_ko",
    "ako_with_w",
    "aggregate_statistics",
    "AKOResult",
    "plsAKO",
    "ko_withW",
    "AKO_withKO",
    "AKO_withW",
    # Utility functions
    "simulate_ar1",
    "fdp",
    "power",
    "normc",
    "standardize",
    "trial_seeds",
    # Statistics
    "stats",
    "register_statistic",
    "available_statistics",
]
