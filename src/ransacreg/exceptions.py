"""
Exception hierarchy for ransacreg.

All library errors inherit from RansacRegError so callers can catch any
of them with a single except clause.
"""
from typing import Optional


class RansacRegError(Exception):
    """Base exception for all ransacreg errors."""
    pass


class ConfigurationError(RansacRegError, ValueError):
    """
    Invalid RANSAC parameters or inconsistent inputs.

    Raised before any computation begins, e.g. when the training sample
    would not leave at least one row to check, or when the design matrix
    and response vector disagree on the number of rows.
    """
    pass


class SingularMatrixError(RansacRegError):
    """
    Normal equations cannot be solved.

    Attributes:
        matrix_name: Name of the problematic matrix
        rank: Numerical rank, if computed
        expected_rank: Rank required for a unique solution
    """

    def __init__(
        self,
        message: str,
        matrix_name: Optional[str] = None,
        rank: Optional[int] = None,
        expected_rank: Optional[int] = None
    ):
        super().__init__(message)
        self.matrix_name = matrix_name
        self.rank = rank
        self.expected_rank = expected_rank


class NotFittedError(RansacRegError, ValueError):
    """Estimator used before fit() was called."""
    pass
