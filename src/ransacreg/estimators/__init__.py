"""
Estimators for robust linear regression.
"""
from ransacreg.estimators.ols import OLSEngine, LinAlgHelper
from ransacreg.estimators.ransac import (
    RANSACController,
    RANSACFit,
    normalized_distance,
)

__all__ = [
    'OLSEngine',
    'LinAlgHelper',
    'RANSACController',
    'RANSACFit',
    'normalized_distance',
]
