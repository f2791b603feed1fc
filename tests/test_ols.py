import numpy as np
import pytest
from scipy import stats
from ransacreg.estimators.ols import OLSEngine, LinAlgHelper
from ransacreg.exceptions import ConfigurationError, SingularMatrixError


class TestLinAlgHelper:
    """Tests for linear algebra helper functions."""

    def test_solve_regular(self):
        """Test solving a well-conditioned system."""
        A = np.array([[2, 1], [1, 2]], dtype=float)
        b = np.array([3, 3], dtype=float)

        x = LinAlgHelper.solve_normal_equations(A, b)

        assert np.allclose(A @ x, b, atol=1e-10)

    def test_solve_singular_raises(self):
        """Singular systems are reported, not regularized."""
        A = np.array([[1, 1], [1, 1]], dtype=float)
        b = np.array([2, 2], dtype=float)

        with pytest.raises(SingularMatrixError) as exc_info:
            LinAlgHelper.solve_normal_equations(A, b)

        assert exc_info.value.rank == 1
        assert exc_info.value.expected_rank == 2

    def test_rank_and_condition(self):
        """Rank and condition number come from one decomposition."""
        rank, cond = LinAlgHelper.rank_and_condition(np.eye(3))
        assert rank == 3
        assert np.isclose(cond, 1.0)

        A = np.array([[1, 1], [1, 1.0001]])
        rank, cond = LinAlgHelper.rank_and_condition(A)
        assert rank == 2
        assert np.isclose(cond, np.linalg.cond(A))

    def test_rank_matches_numpy(self):
        A = np.array([[1, 2, 3], [2, 4, 6], [1, 0, 1]], dtype=float)
        rank, cond = LinAlgHelper.rank_and_condition(A)

        assert rank == np.linalg.matrix_rank(A) == 2
        assert cond == np.inf

    def test_rank_of_zero_matrix(self):
        rank, cond = LinAlgHelper.rank_and_condition(np.zeros((2, 2)))
        assert rank == 0
        assert cond == np.inf


class TestOLSEngine:
    """Tests for the OLS engine."""

    def test_initial_state(self, line_data):
        X, y = line_data
        engine = OLSEngine(X, y)

        assert not engine.is_fitted()
        assert np.array_equal(engine.theta, np.zeros(2))
        assert engine.degrees_of_freedom() == 2

    def test_exact_line(self, line_data):
        """Exact y = 2x recovers [0, 2] with zero error and a significant slope."""
        X, y = line_data
        engine = OLSEngine(X, y)

        theta = engine.fit()

        assert engine.is_fitted()
        assert np.allclose(theta, [0.0, 2.0], atol=1e-8)
        assert engine.mean_squared_error() < 1e-12
        assert engine.p_value(1) < 1e-6

    def test_intercept_statistics_from_marginal_formula(self):
        """A constant column has no spread: SE is infinite, t is 0 and p is 1."""
        X = np.array([[1, 1], [1, 2], [1, 3], [1, 4]], dtype=float)
        y = np.array([3.1, 4.9, 7.2, 8.8])
        engine = OLSEngine(X, y)
        engine.fit()

        assert engine.standard_error(0) == np.inf
        assert engine.t_value(0) == 0.0
        assert engine.p_value(0) == 1.0
        assert engine.p_values()[0] == 1.0
        assert 0.0 < engine.p_value(1) < 0.01

    def test_intercept_statistics_undefined_on_exact_fit(self):
        """With mse == 0 the intercept's marginal SE is 0/0."""
        X = np.array([[1, 0], [1, 1], [1, 2]], dtype=float)
        y = np.array([1, 2, 3], dtype=float)
        engine = OLSEngine(X, y)
        engine.fit()

        assert engine.mean_squared_error() == 0.0
        assert engine.standard_error(0) is None
        assert engine.p_value(0) is None
        assert engine.t_value(1) == np.inf
        assert engine.p_value(1) == 0.0

    def test_statistics_undefined_before_fit(self, line_data):
        X, y = line_data
        engine = OLSEngine(X, y)

        assert engine.mean_squared_error() is None
        assert engine.t_value(1) is None
        assert engine.p_value(1) is None
        assert engine.r_squared() is None

    def test_statistics_undefined_without_dof(self):
        """With as many rows as columns the fit works but inference does not."""
        X = np.array([[1, 1], [1, 2]], dtype=float)
        y = np.array([1, 3], dtype=float)
        engine = OLSEngine(X, y)
        engine.fit()

        assert engine.is_fitted()
        assert engine.degrees_of_freedom() == 0
        assert engine.mean_squared_error() is None
        assert engine.p_values() == [None, None]
        assert engine.t_values() == [None, None]

    def test_fitted_with_exact_zero_coefficient(self):
        """is_fitted does not depend on coefficient values."""
        X = np.array([[1, 0], [0, 1], [1, 0], [0, 1]], dtype=float)
        y = np.array([3, 0, 3, 0], dtype=float)
        engine = OLSEngine(X, y)

        theta = engine.fit()

        assert theta[1] == 0.0
        assert engine.is_fitted()

    def test_fit_is_repeatable(self, noisy_data):
        X, y = noisy_data
        engine = OLSEngine(X, y)

        first = engine.fit()
        second = engine.fit()

        assert np.array_equal(first, second)

    def test_singular_fit_leaves_state(self):
        """A failed fit raises and keeps the engine unfitted."""
        X = np.array([[1, 2], [1, 2], [1, 2]], dtype=float)
        y = np.array([1, 2, 3], dtype=float)
        engine = OLSEngine(X, y)

        with pytest.raises(SingularMatrixError):
            engine.fit()

        assert not engine.is_fitted()
        assert np.array_equal(engine.theta, np.zeros(2))

    def test_empty_design_is_singular(self):
        engine = OLSEngine(np.empty((0, 2)), np.empty(0))
        with pytest.raises(SingularMatrixError):
            engine.fit()

    def test_dimension_mismatch(self):
        with pytest.raises(ConfigurationError):
            OLSEngine(np.ones((5, 2)), np.ones(4))

    def test_degrees_of_freedom(self, noisy_data):
        X, y = noisy_data
        engine = OLSEngine(X[:10], y[:10])
        assert engine.degrees_of_freedom() == 8

    def test_mean_squared_error(self, noisy_data):
        X, y = noisy_data
        engine = OLSEngine(X, y)
        theta = engine.fit()

        expected = np.sum((X @ theta - y) ** 2) / (len(y) - 2)
        assert np.isclose(engine.mean_squared_error(), expected)

    def test_matches_lstsq(self, noisy_data):
        X, y = noisy_data
        engine = OLSEngine(X, y)
        theta = engine.fit()

        expected, *_ = np.linalg.lstsq(X, y, rcond=None)
        assert np.allclose(theta, expected, atol=1e-10)

    def test_marginal_standard_error(self):
        """Standard error uses only the spread of the predictor itself."""
        np.random.seed(3)
        n = 100
        x1 = np.random.randn(n)
        x2 = 0.5 * x1 + np.random.randn(n)
        y = 1.0 + 2.0 * x1 - 1.0 * x2 + np.random.randn(n)
        X = np.column_stack([np.ones(n), x1, x2])

        engine = OLSEngine(X, y)
        theta = engine.fit()
        mse = engine.mean_squared_error()

        for col in (1, 2):
            x = X[:, col]
            expected_se = np.sqrt(mse) / np.sqrt(np.sum((x - x.mean()) ** 2))
            assert np.isclose(engine.standard_error(col), expected_se)
            assert np.isclose(engine.t_value(col), theta[col] / expected_se)

            expected_p = 2 * (1 - stats.t.cdf(abs(theta[col] / expected_se), n - 3))
            assert np.isclose(engine.p_value(col), expected_p)

    def test_simple_regression_matches_linregress(self, noisy_data):
        """With one predictor the marginal standard error is the textbook one."""
        X, y = noisy_data
        engine = OLSEngine(X, y)
        engine.fit()

        reference = stats.linregress(X[:, 1], y)

        assert np.isclose(engine.theta[1], reference.slope)
        assert np.isclose(engine.theta[0], reference.intercept)
        assert np.isclose(engine.standard_error(1), reference.stderr)
        assert np.isclose(engine.p_value(1), reference.pvalue, atol=1e-12)

    def test_r_squared(self, noisy_data):
        X, y = noisy_data
        engine = OLSEngine(X, y)
        engine.fit()

        reference = stats.linregress(X[:, 1], y)
        assert np.isclose(engine.r_squared(), reference.rvalue ** 2)

    def test_predict(self, line_data):
        X, y = line_data
        engine = OLSEngine(X, y)
        engine.fit()

        assert np.allclose(engine.predict(np.array([[1.0, 10.0]])), [20.0])
        assert np.allclose(engine.residuals(), 0.0, atol=1e-10)

    def test_feature_names_default(self, line_data):
        X, y = line_data
        engine = OLSEngine(X, y)
        assert engine.get_feature_names() == ['feature_0', 'feature_1']


@pytest.mark.monte_carlo
def test_unbiasedness():
    """Monte Carlo test: slope estimate is unbiased."""
    np.random.seed(123)
    n_simulations = 300
    n_samples = 100
    true_theta = np.array([0.5, -1.0])

    estimates = []
    for _ in range(n_simulations):
        x = np.random.randn(n_samples)
        X = np.column_stack([np.ones(n_samples), x])
        y = X @ true_theta + np.random.randn(n_samples)

        engine = OLSEngine(X, y)
        estimates.append(engine.fit())

    mean_bias = np.abs(np.mean(estimates, axis=0) - true_theta)
    assert np.all(mean_bias < 0.03)
