import numpy as np
import pandas as pd
import pyarrow.parquet as pq
from pathlib import Path
from typing import Union, List, Optional, Tuple
from dataclasses import dataclass
import logging

from ransacreg.formula import FormulaParser

logger = logging.getLogger(__name__)


@dataclass
class DatasetInfo:
    """Metadata about a dataset."""
    n_rows: int
    n_cols: int
    columns: List[str]
    numeric_columns: List[str]
    source_type: str  # 'dataframe', 'parquet'
    source_path: Optional[Path] = None


class FrameData:
    """
    In-memory tabular data source for regression.

    RANSAC resamples rows at random, so the full table is materialized as a
    pandas DataFrame.

    Supports:
    - Pandas DataFrame
    - Single or partitioned parquet dataset (read with PyArrow)
    """

    def __init__(
        self,
        data: Union[str, Path, pd.DataFrame],
        query: Optional[str] = None,
        columns: Optional[List[str]] = None
    ):
        """
        Initialize data source.

        Parameters:
        -----------
        data : str, Path, or DataFrame
            Data source to load
        query : str, optional
            Pandas query string to filter data
        columns : list of str, optional
            Columns to load from parquet (projection). Ignored for DataFrames.
        """
        self.query = query
        self._df: Optional[pd.DataFrame] = None

        self._setup_data_source(data, columns)

        if self.query:
            self._apply_query_filter()

    def _setup_data_source(self, data: Union[str, Path, pd.DataFrame],
                           columns: Optional[List[str]]):
        """Setup data source and extract metadata."""
        if isinstance(data, pd.DataFrame):
            self._df = data
            source_type, source_path = 'dataframe', None
        else:
            path = Path(data)
            if not path.exists():
                raise FileNotFoundError(f"Data source not found: {path}")

            if path.is_dir() or path.suffix == '.parquet':
                self._df = self._read_parquet(path, columns)
                source_type, source_path = 'parquet', path
            else:
                raise ValueError(f"Unsupported data source: {path}")

        self.info = DatasetInfo(
            n_rows=len(self._df),
            n_cols=len(self._df.columns),
            columns=self._df.columns.tolist(),
            numeric_columns=self._df.select_dtypes(include=[np.number]).columns.tolist(),
            source_type=source_type,
            source_path=source_path
        )

        logger.debug(f"Loaded {source_type}: {self.info.n_rows:,} rows, {self.info.n_cols} columns")

    @staticmethod
    def _read_parquet(path: Path, columns: Optional[List[str]]) -> pd.DataFrame:
        """Read a parquet file or partitioned directory into pandas."""
        try:
            table = pq.read_table(str(path), columns=columns)
        except Exception as e:
            raise ValueError(f"Failed to load parquet from {path}: {e}") from e

        df = table.to_pandas()
        logger.info(f"Loaded parquet: {len(df):,} rows, {len(df.columns)} columns from {path}")
        return df

    def _apply_query_filter(self):
        """Apply query filter to the DataFrame."""
        try:
            self._df = self._df.query(self.query)
        except Exception as e:
            raise ValueError(f"Invalid query string '{self.query}': {e}") from e

        self.info.n_rows = len(self._df)
        logger.info(f"Query filter applied: {self.query} ({self.info.n_rows:,} rows remain)")

    @property
    def frame(self) -> pd.DataFrame:
        return self._df

    def validate_columns(self, required_cols: List[str]) -> None:
        """Validate that required columns exist."""
        missing = [col for col in required_cols if col not in self.info.columns]
        if missing:
            raise ValueError(f"Missing required columns: {missing}")

    def get_numeric_columns(self, exclude: Optional[List[str]] = None) -> List[str]:
        """Get list of numeric columns, optionally excluding some."""
        exclude = exclude or []
        return [col for col in self.info.numeric_columns if col not in exclude]

    def to_design(self, parser: FormulaParser,
                  drop_missing: bool = True) -> Tuple[np.ndarray, np.ndarray, List[str]]:
        """
        Build the design matrix and response for a parsed formula.

        Rows with a missing or non-finite value in any used column are dropped,
        unless drop_missing is False, in which case they are kept as NaN so
        the output stays aligned with the input rows.

        Returns:
        --------
        X : ndarray
            Design matrix, intercept column first when the formula has one
        y : ndarray
            Response vector
        feature_names : list of str
            Column names of X
        """
        required_cols = [parser.target] + parser.features
        self.validate_columns(required_cols)

        df = self._df[required_cols]
        non_numeric = [c for c in required_cols if not pd.api.types.is_numeric_dtype(df[c])]
        if non_numeric:
            raise ValueError(f"Non-numeric columns in formula: {non_numeric}")

        if drop_missing:
            values = df.to_numpy(dtype=float)
            valid_mask = np.isfinite(values).all(axis=1)
            n_dropped = int((~valid_mask).sum())
            if n_dropped:
                logger.info(f"Dropped {n_dropped:,} rows with missing values")
            df = df[valid_mask]

        columns = []
        if parser.has_intercept:
            columns.append(np.ones(len(df)))
        for term in parser.terms:
            column, power = parser.split_term(term)
            columns.append(df[column].to_numpy(dtype=float) ** power)

        X = np.column_stack(columns) if columns else np.empty((len(df), 0))
        y = df[parser.target].to_numpy(dtype=float)

        return X, y, parser.get_feature_names()
