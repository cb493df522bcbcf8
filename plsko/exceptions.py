"""Exception and warning classes for plsko."""


class ConfigurationError(ValueError):
    """
    Raised for malformed inputs or options.

    Examples are a non-square adjacency matrix, a neighborhood that
    contains its own variable, an out-of-range sparsity level, or a
    response whose length does not match the number of rows in X.
    """


class ScorerContractViolation(ValueError):
    """
    Raised when an importance statistic does not honour its contract.

    A statistic must return a finite vector with one entry per original
    variable.
    """


class FitDegeneracyWarning(UserWarning):
    """
    Issued when some knockoff columns had to fall back to noise.

    This happens when a variable has no usable regressors (empty
    neighborhood or zero-rank regressor matrix) or the PLS fit produced
    non-finite values.
    """
