import numpy as np
import pandas as pd
from typing import Union, Optional, Dict, Any, List
from pathlib import Path
import logging

from ransacreg.config import RANSACConfig
from ransacreg.data import FrameData
from ransacreg.exceptions import NotFittedError
from ransacreg.formula import FormulaParser
from ransacreg.results import RegressionResults, as_float_array
from ransacreg.estimators.ols import OLSEngine
from ransacreg.estimators.ransac import RANSACController, RandomState

logger = logging.getLogger(__name__)

DataInput = Union[str, Path, pd.DataFrame, FrameData]


class _FormulaEstimator:
    """Shared formula handling, prediction and result access."""

    model_type = 'base'

    def __init__(self, formula: str):
        self.formula = formula
        self._parser = FormulaParser.parse(formula)
        self._results: Optional[RegressionResults] = None

    def _prepare(self, data: DataInput, query: Optional[str]):
        """Turn the data source into (X, y, feature_names)."""
        if not isinstance(data, FrameData):
            data = FrameData(data, query=query)
        elif query is not None:
            logger.warning("Query parameter ignored when data is already a FrameData object")

        return data.to_design(self._parser)

    def _require_results(self) -> RegressionResults:
        if self._results is None:
            raise NotFittedError("Model must be fitted first")
        return self._results

    def summary(self) -> pd.DataFrame:
        """
        Get regression summary table.

        Returns:
        --------
        DataFrame with coefficients, standard errors, t-stats, and p-values.
        Undefined statistics are NaN.
        """
        return self._require_results().summary()

    def predict(self, X: Union[pd.DataFrame, np.ndarray]) -> np.ndarray:
        """
        Make predictions on new data.

        Parameters:
        -----------
        X : DataFrame or ndarray
            A DataFrame with the formula's columns, or an array that is
            already a design matrix (intercept column included)

        Returns:
        --------
        predictions : ndarray
        """
        results = self._require_results()

        if isinstance(X, pd.DataFrame):
            frame = X.copy()
            if self._parser.target not in frame.columns:
                frame[self._parser.target] = 0.0
            # Rows with missing features predict NaN
            X, _, _ = FrameData(frame).to_design(self._parser, drop_missing=False)
        else:
            X = np.asarray(X, dtype=float)

        return X @ results.coefficients

    def save_results(
        self,
        output_dir: str,
        spec_name: Optional[str] = None,
        spec_config: Optional[Dict[str, Any]] = None,
        full_config: Optional[Dict[str, Any]] = None,
        formats: Optional[List[str]] = None
    ) -> Path:
        """Save regression results to disk. See RegressionResults.save()."""
        spec_config = dict(spec_config or {})
        spec_config.setdefault('formula', self.formula)
        return self._require_results().save(
            output_dir=output_dir,
            spec_name=spec_name,
            spec_config=spec_config,
            full_config=full_config,
            formats=formats
        )

    # Scikit-learn style properties
    @property
    def coef_(self) -> np.ndarray:
        """Coefficient estimates."""
        return self._require_results().coefficients

    @property
    def pvalues_(self) -> np.ndarray:
        """p-values (NaN where undefined)."""
        return self._require_results().p_values

    @property
    def mse_(self) -> Optional[float]:
        """Mean squared error of the final fit."""
        return self._require_results().mse

    @property
    def n_obs_(self) -> int:
        """Number of observations used in the final fit."""
        return self._require_results().n_obs

    @property
    def results_(self) -> RegressionResults:
        """Full results object."""
        return self._require_results()


class OLS(_FormulaEstimator):
    """
    Ordinary Least Squares on all rows.

    Usage:
    ------
    >>> model = OLS("y ~ x1 + x2").fit(df)
    >>> print(model.summary())
    """

    model_type = 'ols'

    def fit(self, data: DataInput, query: Optional[str] = None) -> 'OLS':
        """
        Fit the model.

        Parameters:
        -----------
        data : str, Path, DataFrame, or FrameData
            Data source
        query : str, optional
            Pandas query string to filter data

        Returns:
        --------
        self : OLS
            Fitted model
        """
        X, y, feature_names = self._prepare(data, query)

        engine = OLSEngine(X, y, feature_names)
        engine.fit()

        self._results = RegressionResults(
            coefficients=engine.theta.copy(),
            std_errors=as_float_array(engine.standard_errors()),
            feature_names=feature_names,
            n_obs=engine.n_obs,
            n_features=engine.n_features,
            mse=engine.mean_squared_error(),
            r_squared=engine.r_squared(),
            t_statistics=as_float_array(engine.t_values()),
            p_values=as_float_array(engine.p_values()),
            model_type=self.model_type,
            df_resid=engine.degrees_of_freedom()
        )
        logger.info(f"OLS fitted on {engine.n_obs:,} rows, {engine.n_features} features")
        return self


class RobustOLS(_FormulaEstimator):
    """
    OLS made robust to outliers by RANSAC consensus.

    Usage:
    ------
    >>> model = RobustOLS("y ~ x", random_state=0, max_dist_to_be_inlier=0.1)
    >>> model.fit(df)
    >>> model.coef_, model.pvalues_, model.mse_
    """

    model_type = 'ransac'

    def __init__(
        self,
        formula: str,
        config: Optional[RANSACConfig] = None,
        random_state: RandomState = None,
        n_workers: Optional[int] = None,
        **options: Any
    ):
        """
        Initialize robust estimator.

        Parameters:
        -----------
        formula : str
            R-style formula (e.g., "y ~ x1 + x2")
        config : RANSACConfig, optional
            Search parameters
        random_state : int, Generator, or None
            Seed or generator for the random samples
        n_workers : int, optional
            Concurrent iterations per batch (None = sequential)
        **options
            Overrides for individual RANSACConfig fields
        """
        super().__init__(formula)
        config = config or RANSACConfig()
        self.config = config.with_overrides(**options) if options else config
        self.random_state = random_state
        self.n_workers = n_workers

    def fit(self, data: DataInput, query: Optional[str] = None) -> 'RobustOLS':
        """
        Fit the model.

        Parameters:
        -----------
        data : str, Path, DataFrame, or FrameData
            Data source
        query : str, optional
            Pandas query string to filter data

        Returns:
        --------
        self : RobustOLS
            Fitted model
        """
        X, y, feature_names = self._prepare(data, query)

        controller = RANSACController(
            X, y,
            config=self.config,
            random_state=self.random_state,
            n_workers=self.n_workers,
            feature_names=feature_names
        )
        fit = controller.run()

        # A fallback fit was estimated on the training sample only
        n_obs = fit.n_inliers if fit.refitted else fit.n_train
        self._results = RegressionResults(
            coefficients=fit.coefficients,
            std_errors=as_float_array(fit.std_errors),
            feature_names=feature_names,
            n_obs=n_obs,
            n_features=len(feature_names),
            mse=fit.mse,
            r_squared=fit.r_squared,
            t_statistics=as_float_array(fit.t_values),
            p_values=as_float_array(fit.p_values),
            model_type=self.model_type,
            df_resid=n_obs - len(feature_names),
            n_population=len(y),
            inlier_mask=fit.inlier_mask,
            best_inlier_count=fit.best_inlier_count,
            n_check=fit.n_check,
            n_iterations=fit.n_iterations,
            converged=fit.converged,
            refitted=fit.refitted,
            ransac_config=self.config.to_dict()
        )
        return self

    @property
    def inlier_mask_(self) -> np.ndarray:
        """Rows of the (filtered) data in the final consensus set."""
        return self._require_results().inlier_mask
