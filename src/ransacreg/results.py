import numpy as np
import pandas as pd
from typing import Dict, List, Optional, Any, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from datetime import datetime
import logging

logger = logging.getLogger(__name__)


def as_float_array(values: Sequence[Optional[float]]) -> np.ndarray:
    """Convert a sequence with None for undefined statistics to a float array with NaN."""
    return np.array([np.nan if v is None else v for v in values], dtype=float)


def _optional(value) -> Optional[float]:
    """NaN back to None for serialization."""
    if value is None:
        return None
    value = float(value)
    return None if np.isnan(value) else value


@dataclass
class RegressionResults:
    """
    Regression results container with built-in formatting and saving.

    Works for plain OLS and RANSAC fits. Undefined statistics are stored
    as NaN and serialized as null.
    """
    # Core results - REQUIRED, no defaults
    coefficients: np.ndarray
    std_errors: np.ndarray
    feature_names: List[str]

    # Model fit - REQUIRED, no defaults
    n_obs: int
    n_features: int
    mse: Optional[float]
    r_squared: Optional[float]

    # Inference - REQUIRED, no defaults
    t_statistics: np.ndarray
    p_values: np.ndarray

    # Metadata - REQUIRED, no defaults
    model_type: str  # 'ols' or 'ransac'

    df_resid: Optional[int] = None

    # RANSAC diagnostics - all optional
    n_population: Optional[int] = None
    inlier_mask: Optional[np.ndarray] = None
    best_inlier_count: Optional[int] = None
    n_check: Optional[int] = None
    n_iterations: Optional[int] = None
    converged: Optional[bool] = None
    refitted: Optional[bool] = None
    ransac_config: Optional[Dict[str, Any]] = None

    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def n_inliers(self) -> Optional[int]:
        if self.inlier_mask is None:
            return None
        return int(np.sum(self.inlier_mask))

    @property
    def inlier_fraction(self) -> Optional[float]:
        """Best inlier fraction of the check partition found during the search."""
        if self.best_inlier_count is None or not self.n_check:
            return None
        return self.best_inlier_count / self.n_check

    def save(
        self,
        output_dir: str,
        spec_name: Optional[str] = None,
        spec_config: Optional[Dict[str, Any]] = None,
        full_config: Optional[Dict[str, Any]] = None,
        formats: Optional[List[str]] = None
    ) -> Path:
        """
        Save results to disk in multiple formats.

        Parameters:
        -----------
        output_dir : str
            Base directory for outputs
        spec_name : str, optional
            Name for this run (used in subdirectory)
        spec_config : dict, optional
            Specification configuration (for documentation)
        full_config : dict, optional
            Full configuration snapshot
        formats : list of str, optional
            Formats to save. Options: 'summary', 'csv', 'json'
            Default: all formats

        Returns:
        --------
        run_dir : Path
            Directory where results were saved
        """
        from ransacreg.output import ConfigFormatter

        output_path = Path(output_dir)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

        if spec_name:
            run_dir = output_path / f"{spec_name}_{timestamp}"
        else:
            run_dir = output_path / timestamp

        run_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Saving results to: {run_dir}")

        spec_config = spec_config or {}
        formats = formats or ['summary', 'csv', 'json']

        if 'json' in formats:
            self.save_json(run_dir)

        if 'summary' in formats:
            self.save_summary(run_dir, spec_config)

        if 'csv' in formats:
            self.save_csv(run_dir)

        if full_config:
            ConfigFormatter.save(spec_config, full_config, run_dir, timestamp)

        logger.info(f"All results saved to: {run_dir}")

        return run_dir

    def save_json(self, run_dir: Path) -> None:
        """Save results as JSON."""
        from ransacreg.output import JSONFormatter
        JSONFormatter.format_and_save(self, run_dir)

    def save_summary(self, run_dir: Path, spec_config: Optional[Dict[str, Any]] = None) -> None:
        """Save formatted summary report."""
        from ransacreg.output import SummaryFormatter
        SummaryFormatter.format_and_save(self, run_dir, spec_config or {})

    def save_csv(self, run_dir: Path) -> None:
        """Save coefficient table as CSV."""
        from ransacreg.output import CSVFormatter
        CSVFormatter.format_and_save(self, run_dir)

    def summary(self) -> pd.DataFrame:
        """Get summary table of results."""
        df = pd.DataFrame({
            'coefficient': self.coefficients,
            'std_error': self.std_errors,
            't_statistic': self.t_statistics,
            'p_value': self.p_values
        }, index=self.feature_names)

        # Add significance stars
        df['sig'] = df['p_value'].apply(
            lambda p: '' if pd.isna(p) else '***' if p < 0.01 else '**' if p < 0.05 else '*' if p < 0.10 else ''
        )

        return df

    def get_coefficient(self, feature_name: str) -> Dict[str, Optional[float]]:
        """Get coefficient and statistics for a specific feature."""
        if feature_name not in self.feature_names:
            raise ValueError(f"Feature '{feature_name}' not found in results")

        idx = self.feature_names.index(feature_name)
        return {
            'coefficient': float(self.coefficients[idx]),
            'std_error': _optional(self.std_errors[idx]),
            't_statistic': _optional(self.t_statistics[idx]),
            'p_value': _optional(self.p_values[idx])
        }

    def get_confidence_interval(
        self,
        feature_name: str,
        alpha: float = 0.05
    ) -> Optional[tuple]:
        """
        Confidence interval for a coefficient from Student's t with df_resid dof.

        Returns None when the standard error is undefined. An infinite
        standard error gives the unbounded interval.
        """
        from scipy import stats

        if feature_name not in self.feature_names:
            raise ValueError(f"Feature '{feature_name}' not found in results")

        idx = self.feature_names.index(feature_name)
        coef = self.coefficients[idx]
        se = self.std_errors[idx]

        if np.isnan(se) or not self.df_resid or self.df_resid <= 0:
            return None

        t_crit = stats.t.ppf(1 - alpha / 2, self.df_resid)

        return (float(coef - t_crit * se), float(coef + t_crit * se))

    def to_dict(self) -> Dict[str, Any]:
        """Convert results to dictionary for serialization."""
        result = {
            'model_type': self.model_type,
            'n_obs': int(self.n_obs),
            'n_features': int(self.n_features),
            'df_resid': int(self.df_resid) if self.df_resid is not None else None,
            'mse': _optional(self.mse),
            'r_squared': _optional(self.r_squared),
        }

        result['coefficients'] = {
            name: {
                'estimate': float(self.coefficients[i]),
                'std_error': _optional(self.std_errors[i]),
                't_statistic': _optional(self.t_statistics[i]),
                'p_value': _optional(self.p_values[i])
            }
            for i, name in enumerate(self.feature_names)
        }

        if self.model_type == 'ransac':
            result['ransac'] = {
                'n_population': self.n_population,
                'n_inliers': self.n_inliers,
                'best_inlier_count': self.best_inlier_count,
                'n_check': self.n_check,
                'inlier_fraction': self.inlier_fraction,
                'n_iterations': self.n_iterations,
                'converged': self.converged,
                'refitted': self.refitted,
                'config': self.ransac_config,
            }

        if self.metadata:
            result['metadata'] = self.metadata

        return result

    def __repr__(self) -> str:
        mse = f"{self.mse:.4g}" if self.mse is not None else "undefined"
        return (f"RegressionResults(model={self.model_type}, "
                f"n_obs={self.n_obs:,}, "
                f"n_features={self.n_features}, "
                f"mse={mse})")
