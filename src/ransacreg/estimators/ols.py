import numpy as np
from scipy import stats
from typing import List, Optional, Tuple
import logging

from ransacreg.exceptions import ConfigurationError, SingularMatrixError

logger = logging.getLogger(__name__)

# Constants
CONDITION_NUMBER_THRESHOLD = 1e12


class LinAlgHelper:
    """Helper class for common linear algebra operations with error handling."""

    @staticmethod
    def solve_normal_equations(XtX: np.ndarray, Xty: np.ndarray) -> np.ndarray:
        """
        Solve (X'X) beta = X'y.

        Raises SingularMatrixError instead of regularizing, so callers can
        decide what a failed solve means for them.
        """
        n_features = XtX.shape[0]
        rank, cond = LinAlgHelper.rank_and_condition(XtX)
        if rank < n_features:
            raise SingularMatrixError(
                f"X'X is rank deficient (rank={rank}, expected={n_features})",
                matrix_name="X'X",
                rank=rank,
                expected_rank=n_features
            )
        try:
            beta = np.linalg.solve(XtX, Xty)
        except np.linalg.LinAlgError as e:
            raise SingularMatrixError(
                f"Failed to solve normal equations: {e}",
                matrix_name="X'X",
                expected_rank=n_features
            ) from e
        if not np.all(np.isfinite(beta)):
            raise SingularMatrixError(
                "Normal equations produced non-finite coefficients",
                matrix_name="X'X",
                rank=rank,
                expected_rank=n_features
            )
        if cond > CONDITION_NUMBER_THRESHOLD:
            logger.debug(f"X'X ill-conditioned (cond={cond:.2e})")
        return beta

    @staticmethod
    def rank_and_condition(A: np.ndarray) -> Tuple[int, float]:
        """
        Numerical rank and 2-norm condition number from a single SVD.

        Uses the same tolerance as np.linalg.matrix_rank. The condition
        number is inf for a rank-deficient matrix.
        """
        if A.size == 0:
            return 0, float('inf')
        try:
            s = np.linalg.svd(A, compute_uv=False)
        except np.linalg.LinAlgError:
            return 0, float('inf')
        tol = s.max() * max(A.shape) * np.finfo(s.dtype).eps
        rank = int(np.sum(s > tol))
        if rank < min(A.shape):
            return rank, float('inf')
        return rank, float(s.max() / s.min())


class OLSEngine:
    """
    Ordinary least squares via the normal equations, with marginal t/p inference.

    The design matrix and response are fixed at construction. fit() may be
    called repeatedly and always recomputes from the stored data.
    """

    def __init__(self, X: np.ndarray, y: np.ndarray,
                 feature_names: Optional[List[str]] = None):
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float)
        if X.ndim == 1:
            X = X.reshape(-1, 1)
        if y.ndim == 2 and y.shape[1] == 1:
            y = y.ravel()
        if X.ndim != 2 or y.ndim != 1:
            raise ConfigurationError(
                f"Expected 2D design matrix and 1D response, got shapes {X.shape} and {y.shape}"
            )
        if X.shape[0] != y.shape[0]:
            raise ConfigurationError(
                f"Design matrix has {X.shape[0]} rows but response has {y.shape[0]}"
            )

        self.X = X
        self.y = y
        self.n_obs, self.n_features = X.shape
        self.feature_names = feature_names or [f"feature_{i}" for i in range(self.n_features)]

        self.theta = np.zeros(self.n_features)
        self._fitted = False
        self._linalg = LinAlgHelper()

    def fit(self) -> np.ndarray:
        """
        Solve the normal equations (X'X) beta = X'y.

        Returns:
        --------
        theta : ndarray
            Coefficient vector, one entry per column of X

        Raises:
        -------
        SingularMatrixError
            If X'X is not invertible. The stored coefficients and fitted
            flag are left untouched in that case.
        """
        XtX = self.X.T @ self.X
        Xty = self.X.T @ self.y
        theta = self._linalg.solve_normal_equations(XtX, Xty)

        self.theta = theta
        self._fitted = True
        return theta.copy()

    def is_fitted(self) -> bool:
        return self._fitted

    def degrees_of_freedom(self) -> int:
        return self.n_obs - self.n_features

    def _has_inference(self) -> bool:
        return self._fitted and self.degrees_of_freedom() > 0

    def predict(self, X: Optional[np.ndarray] = None) -> np.ndarray:
        """Predictions for X (defaults to the training design matrix)."""
        X = self.X if X is None else np.asarray(X, dtype=float)
        return X @ self.theta

    def residuals(self) -> np.ndarray:
        return self.predict() - self.y

    def mean_squared_error(self) -> Optional[float]:
        """sum((X beta - y)^2) / dof, or None if unfitted or dof <= 0."""
        if not self._has_inference():
            return None
        errors = self.residuals()
        return float(np.sum(errors ** 2) / self.degrees_of_freedom())

    def standard_error(self, col: int) -> Optional[float]:
        """
        Marginal standard error of coefficient `col`.

        sqrt(mse) / sqrt(sum((x_col - mean(x_col))^2)). This uses the spread
        of the single predictor only and ignores correlation between
        predictors, so it is an approximation, not the diagonal of
        mse * (X'X)^-1. A column with no spread (the intercept) gets inf,
        hence t = 0 and p = 1, unless mse is also 0, where the ratio is 0/0
        and the result is undefined.
        """
        mse = self.mean_squared_error()
        if mse is None:
            return None
        x = self.X[:, col]
        spread = float(np.sum((x - x.mean()) ** 2))
        if spread <= 0:
            return float('inf') if mse > 0 else None
        return float(np.sqrt(mse) / np.sqrt(spread))

    def t_value(self, col: int) -> Optional[float]:
        se = self.standard_error(col)
        if se is None:
            return None
        beta = float(self.theta[col])
        if se == 0:
            # Exact fit: the estimate is infinitely significant unless it is zero
            if beta == 0:
                return None
            return float(np.copysign(np.inf, beta))
        return beta / se

    def p_value(self, col: int) -> Optional[float]:
        """Two-sided p-value from Student's t with degrees_of_freedom() dof."""
        t = self.t_value(col)
        if t is None:
            return None
        return float(2 * (1 - stats.t.cdf(np.abs(t), self.degrees_of_freedom())))

    def standard_errors(self) -> List[Optional[float]]:
        return [self.standard_error(i) for i in range(self.n_features)]

    def t_values(self) -> List[Optional[float]]:
        return [self.t_value(i) for i in range(self.n_features)]

    def p_values(self) -> List[Optional[float]]:
        return [self.p_value(i) for i in range(self.n_features)]

    def r_squared(self) -> Optional[float]:
        """Calculate R-squared."""
        if not self._fitted or self.n_obs == 0:
            return None
        tss = float(np.sum((self.y - self.y.mean()) ** 2))
        if tss <= 0:
            return None
        rss = float(np.sum(self.residuals() ** 2))
        return 1.0 - rss / tss

    def get_feature_names(self) -> List[str]:
        """Get feature names."""
        return list(self.feature_names)

    def __repr__(self) -> str:
        return (f"OLSEngine(n_obs={self.n_obs}, n_features={self.n_features}, "
                f"fitted={self._fitted})")
