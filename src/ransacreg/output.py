"""
Output formatters for regression results.

Each formatter is responsible for converting RegressionResults to a specific format
and saving it to disk. Formatters are stateless and used by RegressionResults.save().
"""

import json
import logging
from pathlib import Path
from datetime import datetime
from typing import Dict, Any

logger = logging.getLogger(__name__)


def _fmt(value, spec: str) -> str:
    """Format an optional number, rendering undefined values as 'undefined'."""
    if value is None:
        return "undefined"
    return format(value, spec)


class BaseFormatter:
    """Base class for output formatters."""

    @staticmethod
    def format_and_save(results, run_dir: Path, *args, **kwargs) -> None:
        """Format and save results. Must be implemented by subclasses."""
        raise NotImplementedError


class JSONFormatter(BaseFormatter):
    """Format and save results as JSON."""

    @staticmethod
    def format_and_save(results, run_dir: Path) -> None:
        """Save results as JSON."""
        results_file = run_dir / "results.json"

        with open(results_file, 'w') as f:
            json.dump(results.to_dict(), f, indent=2, ensure_ascii=False)

        logger.info(f"Saved JSON results: {results_file.name}")


class SummaryFormatter(BaseFormatter):
    """Format and save summary report."""

    @staticmethod
    def format_and_save(results, run_dir: Path, spec_config: Dict[str, Any]) -> None:
        """Save formatted summary report."""
        summary_file = run_dir / "summary.txt"

        with open(summary_file, 'w') as f:
            SummaryFormatter._write_header(f, results, spec_config)
            SummaryFormatter._write_model_stats(f, results)
            SummaryFormatter._write_ransac_stats(f, results)
            SummaryFormatter._write_coefficients(f, results)
            SummaryFormatter._write_footer(f)

        logger.info("Saved summary report: summary.txt")

    @staticmethod
    def _write_header(f, results, spec_config: Dict) -> None:
        """Write report header."""
        f.write("=" * 80 + "\n")
        f.write("REGRESSION ANALYSIS RESULTS\n")
        f.write("=" * 80 + "\n\n")

        f.write(f"Analysis: {spec_config.get('description', 'N/A')}\n")
        f.write(f"Model Type: {results.model_type.upper()}\n")
        if spec_config.get('formula'):
            f.write(f"Formula: {spec_config['formula']}\n")
        f.write(f"Date: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
        f.write("\n" + "-" * 80 + "\n\n")

    @staticmethod
    def _write_model_stats(f, results) -> None:
        """Write model statistics."""
        f.write("MODEL STATISTICS\n")
        f.write("-" * 80 + "\n")
        f.write(f"Observations:           {results.n_obs:>15,}\n")
        f.write(f"Features:               {results.n_features:>15}\n")
        f.write(f"Residual DoF:           {_fmt(results.df_resid, '>15')}\n")
        f.write(f"Mean Squared Error:     {_fmt(results.mse, '>15.6g')}\n")
        f.write(f"R-squared:              {_fmt(results.r_squared, '>15.6f')}\n")
        f.write("\n" + "-" * 80 + "\n\n")

    @staticmethod
    def _write_ransac_stats(f, results) -> None:
        """Write consensus search statistics."""
        if results.model_type != 'ransac':
            return

        f.write("CONSENSUS SEARCH\n")
        f.write("-" * 80 + "\n")
        f.write(f"Population:             {_fmt(results.n_population, '>15,')}\n")
        f.write(f"Consensus set size:     {_fmt(results.n_inliers, '>15,')}\n")
        f.write(f"Iterations:             {_fmt(results.n_iterations, '>15,')}\n")
        f.write(f"Best check inliers:     {_fmt(results.best_inlier_count, '>7,')} / {_fmt(results.n_check, ',')}\n")
        f.write(f"Best inlier fraction:   {_fmt(results.inlier_fraction, '>15.4f')}\n")
        f.write(f"Early stop reached:     {str(results.converged):>15}\n")
        f.write(f"Consensus refit:        {str(results.refitted):>15}\n")
        if results.ransac_config:
            f.write("\nSettings:\n")
            for key, value in sorted(results.ransac_config.items()):
                f.write(f"  {key:.<30} {value}\n")
        f.write("\n" + "-" * 80 + "\n\n")

    @staticmethod
    def _write_coefficients(f, results) -> None:
        """Write coefficient table."""
        f.write("COEFFICIENT ESTIMATES\n")
        f.write("-" * 80 + "\n")
        summary_df = results.summary()
        f.write(summary_df.to_string(na_rep='undefined'))
        f.write("\n\n")
        f.write("Significance levels: *** p<0.01, ** p<0.05, * p<0.10\n")
        f.write("Standard errors use the marginal spread of each predictor.\n")
        f.write("\n" + "-" * 80 + "\n\n")

    @staticmethod
    def _write_footer(f) -> None:
        """Write report footer."""
        f.write("=" * 80 + "\n")
        f.write("End of Report\n")
        f.write("=" * 80 + "\n")


class CSVFormatter(BaseFormatter):
    """Format and save coefficient table as CSV."""

    @staticmethod
    def format_and_save(results, run_dir: Path) -> None:
        """Save coefficient table as CSV."""
        csv_file = run_dir / "coefficients.csv"
        summary_df = results.summary()

        summary_df['feature'] = summary_df.index
        summary_df['n_obs'] = results.n_obs
        summary_df['mse'] = results.mse

        cols = ['feature', 'coefficient', 'std_error', 't_statistic', 'p_value', 'sig',
                'n_obs', 'mse']
        summary_df[cols].to_csv(csv_file, index=False)

        logger.info("Saved coefficient table: coefficients.csv")


class ConfigFormatter:
    """Format and save configuration snapshot."""

    @staticmethod
    def save(spec_config: Dict, full_config: Dict, run_dir: Path, timestamp: str) -> None:
        """Save configuration snapshot."""
        config_file = run_dir / "config_snapshot.json"
        snapshot = {
            'specification': spec_config,
            'timestamp': datetime.now().isoformat(),
            'run_id': timestamp,
            'full_config': full_config
        }

        with open(config_file, 'w') as f:
            json.dump(snapshot, f, indent=2, ensure_ascii=False, default=str)

        logger.info("Saved config snapshot: config_snapshot.json")
