import time
import numpy as np
import dask
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple, Union
import logging

from ransacreg.config import RANSACConfig
from ransacreg.estimators.ols import OLSEngine
from ransacreg.exceptions import ConfigurationError, SingularMatrixError

logger = logging.getLogger(__name__)

RandomState = Union[None, int, np.random.Generator]


def normalized_distance(X: np.ndarray, y: np.ndarray, theta: np.ndarray) -> np.ndarray:
    """
    Residual distance of each row to the fitted hyperplane.

    |y - X theta| / sqrt(sum(theta[1:]^2) + 1). The first coefficient is
    taken to be the intercept and is left out of the normalization.
    """
    scale = np.sqrt(np.sum(theta[1:] ** 2) + 1.0)
    return np.abs(y - X @ theta) / scale


@dataclass
class IterationOutcome:
    """Result of one sample-fit-check round. theta is None if the fit failed."""
    theta: Optional[np.ndarray]
    p_values: Optional[List[Optional[float]]]
    mse: Optional[float]
    n_inliers: int
    t_values: Optional[List[Optional[float]]] = None
    std_errors: Optional[List[Optional[float]]] = None
    r_squared: Optional[float] = None

    @property
    def usable(self) -> bool:
        return self.theta is not None


class BestResult:
    """Best model seen so far, ranked by inlier count; ties go to the latest."""

    def __init__(self):
        self.outcome: Optional[IterationOutcome] = None

    @property
    def theta(self) -> Optional[np.ndarray]:
        return self.outcome.theta if self.outcome is not None else None

    @property
    def n_inliers(self) -> int:
        return self.outcome.n_inliers if self.outcome is not None else 0

    def update(self, outcome: IterationOutcome) -> bool:
        """Replace the current best if outcome has at least as many inliers."""
        if not outcome.usable:
            return False
        if self.outcome is None or outcome.n_inliers >= self.n_inliers:
            self.outcome = outcome
            return True
        return False


def _run_iteration(X: np.ndarray, y: np.ndarray, n_train: int,
                   max_dist: float, rng) -> IterationOutcome:
    """Module-level function for one RANSAC iteration (used by dask tasks)."""
    rng = np.random.default_rng(rng)
    permutation = rng.permutation(len(y))
    train_idx = permutation[:n_train]
    check_idx = permutation[n_train:]

    engine = OLSEngine(X[train_idx], y[train_idx])
    try:
        theta = engine.fit()
    except SingularMatrixError as e:
        logger.debug(f"Skipping singular sample: {e}")
        return IterationOutcome(theta=None, p_values=None, mse=None, n_inliers=0)

    distances = normalized_distance(X[check_idx], y[check_idx], theta)
    n_inliers = int(np.sum(distances < max_dist))

    return IterationOutcome(
        theta=theta,
        p_values=engine.p_values(),
        mse=engine.mean_squared_error(),
        n_inliers=n_inliers,
        t_values=engine.t_values(),
        std_errors=engine.standard_errors(),
        r_squared=engine.r_squared()
    )


@dataclass
class RANSACFit:
    """
    Outcome of a RANSAC search followed by the consensus refit.

    refitted is False when the consensus set was singular and the statistics
    are those of the best sample fit.
    """
    coefficients: np.ndarray
    p_values: List[Optional[float]]
    mse: Optional[float]
    t_values: List[Optional[float]]
    std_errors: List[Optional[float]]
    r_squared: Optional[float]
    inlier_mask: np.ndarray
    best_inlier_count: int
    n_train: int
    n_check: int
    n_iterations: int
    converged: bool
    feature_names: List[str] = field(default_factory=list)
    refitted: bool = True

    @property
    def n_inliers(self) -> int:
        """Size of the global consensus set used for the final refit."""
        return int(self.inlier_mask.sum())

    @property
    def inlier_fraction(self) -> float:
        """Best inlier fraction of the check partition found during the search."""
        return self.best_inlier_count / self.n_check

    def as_tuple(self) -> Tuple[np.ndarray, List[Optional[float]], Optional[float]]:
        return self.coefficients, self.p_values, self.mse


class RANSACController:
    """
    Robust linear fit by random sample consensus.

    Repeatedly fits OLS on a random training sample, counts the rows of the
    remaining check partition that lie within max_dist_to_be_inlier of the
    fit, keeps the best model, and finally refits OLS on every row of the
    population that the best model classifies as an inlier.

    Usage:
    ------
    >>> controller = RANSACController(X, y, random_state=0, max_iteration=200)
    >>> coefficients, p_values, mse = controller.fitting()
    """

    def __init__(self,
                 X: np.ndarray,
                 y: np.ndarray,
                 config: Optional[RANSACConfig] = None,
                 random_state: RandomState = None,
                 n_workers: Optional[int] = None,
                 feature_names: Optional[List[str]] = None,
                 **options: Any):
        """
        Initialize RANSAC controller.

        Parameters:
        -----------
        X : ndarray
            Design matrix (n x p), intercept column first if present
        y : ndarray
            Response vector (n,)
        config : RANSACConfig, optional
            Search parameters. Defaults to RANSACConfig()
        random_state : int, Generator, or None
            Source of the random permutations. Pass an int or a Generator
            for reproducible runs
        n_workers : int, optional
            Iterations evaluated concurrently per batch. None or 1 runs
            sequentially
        feature_names : list of str, optional
            Names of the columns of X
        **options
            Overrides for individual RANSACConfig fields

        Raises:
        -------
        ConfigurationError
            If parameters are invalid or X and y disagree in shape. Raised
            before any iteration runs.
        """
        config = config or RANSACConfig()
        if options:
            config = config.with_overrides(**options)
        self.config = config

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
        if not (np.all(np.isfinite(X)) and np.all(np.isfinite(y))):
            raise ConfigurationError("Design matrix and response must be finite")

        if n_workers is not None and n_workers < 1:
            raise ConfigurationError(f"n_workers must be >= 1, got {n_workers}")

        self.X = X
        self.y = y
        self.n_population, self.n_features = X.shape
        self.n_train, self.n_check = config.resolve_sizes(self.n_population)
        self.feature_names = feature_names or [f"feature_{i}" for i in range(self.n_features)]
        if len(self.feature_names) != self.n_features:
            raise ConfigurationError(
                f"Got {len(self.feature_names)} feature names for {self.n_features} columns"
            )

        self.n_workers = n_workers
        self._rng = np.random.default_rng(random_state)

    def _should_continue(self, iterations: int, best: BestResult) -> bool:
        """Stopping rule: min_iteration first, then until good enough or max_iteration."""
        cfg = self.config
        if iterations < cfg.min_iteration:
            return True
        return (iterations < cfg.max_iteration
                and best.n_inliers / self.n_check < cfg.min_inlier_perc_to_stop)

    def _search_sequential(self, best: BestResult) -> int:
        max_dist = self.config.max_dist_to_be_inlier
        iterations = 0
        while True:
            outcome = _run_iteration(self.X, self.y, self.n_train, max_dist, self._rng)
            iterations += 1
            if best.update(outcome):
                logger.debug(f"Iteration {iterations}: new best with {outcome.n_inliers}/{self.n_check} inliers")
            if not self._should_continue(iterations, best):
                return iterations

    def _search_parallel(self, best: BestResult) -> int:
        """Run iterations in batches of n_workers dask tasks on the threaded scheduler."""
        max_dist = self.config.max_dist_to_be_inlier
        iterations = 0
        while True:
            batch_size = min(self.n_workers, self.config.max_iteration - iterations)
            batch_size = max(batch_size, 1)
            # Seeds drawn in submission order keep runs reproducible
            seeds = self._rng.integers(0, np.iinfo(np.int64).max, size=batch_size)
            tasks = [
                dask.delayed(_run_iteration)(self.X, self.y, self.n_train, max_dist, int(seed))
                for seed in seeds
            ]
            outcomes = dask.compute(*tasks, scheduler='threads', num_workers=self.n_workers)

            for outcome in outcomes:
                iterations += 1
                if best.update(outcome):
                    logger.debug(f"Iteration {iterations}: new best with {outcome.n_inliers}/{self.n_check} inliers")

            if not self._should_continue(iterations, best):
                return iterations

    def run(self) -> RANSACFit:
        """
        Search for the consensus set and refit on it.

        Returns:
        --------
        RANSACFit with final coefficients, inference, and search diagnostics

        Raises:
        -------
        SingularMatrixError
            If no sample produced a usable model. A singular refit of the
            consensus set falls back to the best sample fit instead, with
            refitted=False.
        """
        start_time = time.time()
        cfg = self.config

        logger.info(
            f"Starting RANSAC: {self.n_population:,} rows, {self.n_features} features, "
            f"n_train={self.n_train}, n_check={self.n_check}, "
            f"workers={self.n_workers or 1}"
        )

        best = BestResult()
        if self.n_workers is None or self.n_workers == 1:
            iterations = self._search_sequential(best)
        else:
            iterations = self._search_parallel(best)

        if best.theta is None:
            raise SingularMatrixError(
                f"No RANSAC sample produced a usable model in {iterations} iterations",
                matrix_name="X'X",
                expected_rank=self.n_features
            )

        converged = best.n_inliers / self.n_check >= cfg.min_inlier_perc_to_stop
        if not converged:
            logger.warning(
                f"RANSAC stopped at max_iteration={cfg.max_iteration} with inlier fraction "
                f"{best.n_inliers / self.n_check:.3f} < {cfg.min_inlier_perc_to_stop}"
            )

        # Consensus set over the whole population
        distances = normalized_distance(self.X, self.y, best.theta)
        inlier_mask = distances < cfg.max_dist_to_be_inlier

        engine = OLSEngine(self.X[inlier_mask], self.y[inlier_mask], self.feature_names)
        try:
            engine.fit()
            final = IterationOutcome(
                theta=engine.theta.copy(),
                p_values=engine.p_values(),
                mse=engine.mean_squared_error(),
                n_inliers=best.n_inliers,
                t_values=engine.t_values(),
                std_errors=engine.standard_errors(),
                r_squared=engine.r_squared()
            )
            refitted = True
        except SingularMatrixError as e:
            logger.warning(
                f"Consensus set of {int(inlier_mask.sum()):,} rows cannot be refitted ({e}); "
                f"returning the best sample fit"
            )
            final = best.outcome
            refitted = False

        elapsed = time.time() - start_time
        logger.info(
            f"RANSAC completed in {elapsed:.2f}s: {iterations} iterations, "
            f"best check inliers {best.n_inliers}/{self.n_check}, "
            f"consensus set {int(inlier_mask.sum()):,}/{self.n_population:,} rows"
        )

        return RANSACFit(
            coefficients=final.theta,
            p_values=final.p_values,
            mse=final.mse,
            t_values=final.t_values,
            std_errors=final.std_errors,
            r_squared=final.r_squared,
            inlier_mask=inlier_mask,
            best_inlier_count=best.n_inliers,
            n_train=self.n_train,
            n_check=self.n_check,
            n_iterations=iterations,
            converged=converged,
            feature_names=list(self.feature_names),
            refitted=refitted
        )

    def fitting(self) -> Tuple[np.ndarray, List[Optional[float]], Optional[float]]:
        """Run the search and return (coefficients, p_values, mse)."""
        return self.run().as_tuple()
