"""
Pytest configuration and fixtures for ransacreg tests.
"""
import pytest
import numpy as np
import pandas as pd


@pytest.fixture
def line_data():
    """Exact y = 2x with an intercept column."""
    X = np.array([[1, 1], [1, 2], [1, 3], [1, 4]], dtype=float)
    y = np.array([2, 4, 6, 8], dtype=float)
    return X, y


@pytest.fixture
def noisy_data():
    """Simple regression data with gaussian noise."""
    np.random.seed(42)
    n = 200
    x = np.random.uniform(0, 10, n)
    y = 1.5 + 0.8 * x + 0.5 * np.random.randn(n)
    X = np.column_stack([np.ones(n), x])
    return X, y


@pytest.fixture
def contaminated_data():
    """
    90% of rows follow y = 2 + 3x exactly, 10% are extreme outliers.

    Returns X, y and the boolean outlier mask.
    """
    np.random.seed(7)
    n = 200
    n_outliers = 20
    x = np.random.uniform(0, 10, n)
    y = 2.0 + 3.0 * x

    outliers = np.zeros(n, dtype=bool)
    outliers[np.random.choice(n, n_outliers, replace=False)] = True
    y[outliers] += 50.0 + 10.0 * np.random.rand(n_outliers)

    X = np.column_stack([np.ones(n), x])
    return X, y, outliers


@pytest.fixture
def contaminated_frame(contaminated_data):
    """Contaminated data as a DataFrame with a grouping column."""
    X, y, outliers = contaminated_data
    return pd.DataFrame({
        'y': y,
        'x': X[:, 1],
        'group': np.where(np.arange(len(y)) % 2 == 0, 'a', 'b'),
        'is_outlier': outliers
    })


@pytest.fixture
def clean_line():
    """100 rows exactly on y = 2 + 3x."""
    x = np.linspace(0, 10, 100)
    X = np.column_stack([np.ones(100), x])
    return X, 2.0 + 3.0 * x
