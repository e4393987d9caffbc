import numpy as np
import pytest
from scipy import stats

from bayeslr import (
    GaussianPosterior,
    bayesian_conjugate_lr,
    basis_expansion,
    predictive_distribution,
    monte_carlo_predictive,
    InvalidParameterError,
)


@pytest.fixture
def posterior_and_test_design(step_data):
    X, t = step_data
    posterior = bayesian_conjugate_lr(basis_expansion(X, X, 0.5, True), t,
                                      0.1, np.zeros(len(X) + 1), 1.0)
    Phi_test = basis_expansion(np.linspace(-10, 10, 9), X, 0.5, True)
    return posterior, Phi_test


def test_closed_form(posterior_and_test_design) -> None:
    posterior, Phi_test = posterior_and_test_design
    pred = predictive_distribution(posterior, Phi_test, 0.1)

    assert np.allclose(pred.mean, Phi_test @ posterior.mean)
    assert np.allclose(pred.signal_var, np.diag(Phi_test @ posterior.cov @ Phi_test.T))
    assert np.allclose(pred.observation_var, pred.signal_var + 0.1)
    assert np.all(pred.signal_var > 0)


def test_single_basis_vector() -> None:
    posterior = GaussianPosterior(np.array([1.0, 2.0]), np.array([[0.5, 0.1], [0.1, 0.2]]))
    pred = predictive_distribution(posterior, np.array([1.0, 3.0]), 0.25)

    assert pred.mean.shape == (1,)
    assert np.isclose(pred.mean[0], 7.0)
    # φᵀCφ = 0.5 + 2·3·0.1 + 9·0.2
    assert np.isclose(pred.signal_var[0], 2.9)
    assert np.isclose(pred.observation_var[0], 3.15)


def test_intervals(posterior_and_test_design) -> None:
    posterior, Phi_test = posterior_and_test_design
    pred = predictive_distribution(posterior, Phi_test, 0.1)

    lo_s, hi_s = pred.interval(0.9, observation=False)
    lo_o, hi_o = pred.interval(0.9, observation=True)

    assert np.allclose(hi_s - pred.mean, 1.645 * np.sqrt(pred.signal_var), rtol=1e-3)
    assert np.all(hi_o - lo_o > hi_s - lo_s)
    assert np.allclose(pred.mean - lo_o, hi_o - pred.mean)

    with pytest.raises(InvalidParameterError):
        pred.interval(1.0)


@pytest.mark.parametrize("n_samples", [1000, 40000])
def test_monte_carlo_mean_converges(posterior_and_test_design, n_samples: int) -> None:
    posterior, Phi_test = posterior_and_test_design
    pred = predictive_distribution(posterior, Phi_test, 0.1)
    mc = monte_carlo_predictive(posterior, Phi_test, n_samples, seed=0)

    # standard error of the sample mean is sqrt(var / M)
    assert np.all(np.abs(mc.mean - pred.mean) < 5 * np.sqrt(pred.signal_var / n_samples))
    assert mc.samples.shape == (n_samples, Phi_test.shape[0])


def test_monte_carlo_quantiles(posterior_and_test_design) -> None:
    posterior, Phi_test = posterior_and_test_design
    pred = predictive_distribution(posterior, Phi_test, 0.1)
    mc = monte_carlo_predictive(posterior, Phi_test, 40000, quantiles=(0.05, 0.5, 0.95), seed=1)
    lo, hi = pred.interval(0.9, observation=False)
    sd = np.sqrt(pred.signal_var)

    assert mc.quantiles.shape == (3, Phi_test.shape[0])
    assert np.all(mc.quantiles[0] < mc.quantiles[1])
    assert np.all(mc.quantiles[1] < mc.quantiles[2])
    assert np.all(np.abs(mc.quantiles[0] - lo) < 0.05 * sd)
    assert np.all(np.abs(mc.quantiles[2] - hi) < 0.05 * sd)


def test_monte_carlo_is_reproducible(posterior_and_test_design) -> None:
    posterior, Phi_test = posterior_and_test_design
    a = monte_carlo_predictive(posterior, Phi_test, 100, seed=7)
    b = monte_carlo_predictive(posterior, Phi_test, 100, seed=7)

    assert np.array_equal(a.samples, b.samples)


def test_invalid_arguments(posterior_and_test_design) -> None:
    posterior, Phi_test = posterior_and_test_design

    with pytest.raises(InvalidParameterError):
        predictive_distribution(posterior, Phi_test[:, :-1], 0.1)
    with pytest.raises(InvalidParameterError):
        predictive_distribution(posterior, Phi_test, 0.0)
    with pytest.raises(InvalidParameterError):
        monte_carlo_predictive(posterior, Phi_test, 10, quantiles=(1.5,))
