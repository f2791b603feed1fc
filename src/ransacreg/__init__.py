"""
RansacReg: Outlier-Robust Linear Regression

Main API:
- OLS: Ordinary least squares estimator
- RobustOLS: RANSAC-consensus least squares estimator
- OLSEngine / RANSACController: array-level building blocks
"""

from ransacreg.api import OLS, RobustOLS
from ransacreg.config import RANSACConfig
from ransacreg.data import FrameData, DatasetInfo
from ransacreg.estimators.ols import OLSEngine
from ransacreg.estimators.ransac import RANSACController, RANSACFit
from ransacreg.exceptions import (
    RansacRegError,
    ConfigurationError,
    SingularMatrixError,
    NotFittedError,
)
from ransacreg.results import RegressionResults
from ransacreg.formula import FormulaParser

__all__ = [
    'OLS',
    'RobustOLS',
    'RANSACConfig',
    'FrameData',
    'DatasetInfo',
    'OLSEngine',
    'RANSACController',
    'RANSACFit',
    'RansacRegError',
    'ConfigurationError',
    'SingularMatrixError',
    'NotFittedError',
    'RegressionResults',
    'FormulaParser'
]

__version__ = '0.1.0'
