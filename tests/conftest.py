import numpy as np
import pytest

from bayeslr import generate_step_data, basis_expansion


@pytest.fixture
def step_data():
    """The 50-point step-signal dataset used by the demos."""
    return generate_step_data(n_samples=50, noise_var=0.04, seed=42)


@pytest.fixture
def rbf_design(step_data):
    X, t = step_data
    return basis_expansion(X, X, sigma2=0.5, intercept=True), t


@pytest.fixture
def linear_problem():
    """A well-specified linear-Gaussian problem: 100 rows, 5 features, noise variance 0.09."""
    rng = np.random.default_rng(0)
    Phi = rng.normal(size=(100, 5))
    theta = rng.normal(size=5)
    y = Phi @ theta + rng.normal(0, 0.3, size=100)
    return Phi, y
