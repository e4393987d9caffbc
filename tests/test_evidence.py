import importlib

import numpy as np
import pytest
from scipy import stats

from bayeslr import (
    bayesian_conjugate_lr,
    log_marginal_likelihood,
    gram_eigenvalues,
    evidence_update,
    evidence_procedure,
    em_procedure,
    ConvergenceWarning,
    DegenerateEvidenceError,
    InvalidParameterError,
)

evidence_module = importlib.import_module("bayeslr.evidence")


def test_log_marginal_likelihood_matches_scipy(linear_problem) -> None:
    Phi, y = linear_problem
    cov = 0.3 * np.eye(len(y)) + 2.0 * Phi @ Phi.T
    expected = stats.multivariate_normal.logpdf(y, np.zeros(len(y)), cov)

    assert np.isclose(log_marginal_likelihood(Phi, y, 0.3, 2.0), expected)


def test_recovers_noise_variance(linear_problem) -> None:
    Phi, y = linear_problem
    result = evidence_procedure(Phi, y)

    assert result.converged
    assert abs(result.sigma2 - 0.09) < 0.05
    assert 0 < result.gamma < len(y)
    assert len(result.history) == result.n_iter


def test_result_unpacks_like_a_tuple(linear_problem) -> None:
    Phi, y = linear_problem
    sigma2, lambda2, posterior, n_iter, *_ = evidence_procedure(Phi, y)
    expected = bayesian_conjugate_lr(Phi, y, sigma2, np.zeros(5), lambda2)

    assert n_iter >= 1
    assert np.allclose(posterior.mean, expected.mean)
    assert np.allclose(posterior.cov, expected.cov)


@pytest.mark.parametrize("tol", [1e-4, 1e-8])
def test_converged_values_are_a_fixed_point(linear_problem, tol: float) -> None:
    Phi, y = linear_problem
    result = evidence_procedure(Phi, y, tol=tol)
    sigma2, lambda2, _, _ = evidence_update(Phi, y, result.sigma2, result.lambda2)

    assert result.converged
    assert abs(sigma2 - result.sigma2) < tol
    assert abs(lambda2 - result.lambda2) < tol


def test_improves_evidence_over_starting_point(linear_problem) -> None:
    Phi, y = linear_problem
    result = evidence_procedure(Phi, y)

    assert result.log_evidence > log_marginal_likelihood(Phi, y, 1.0, 1.0)
    assert np.isclose(result.log_evidence,
                      log_marginal_likelihood(Phi, y, result.sigma2, result.lambda2))


def test_eigendecomposition_computed_once(linear_problem, monkeypatch) -> None:
    Phi, y = linear_problem
    calls = []
    original = evidence_module.eigh

    def counting_eigh(*args, **kwargs):
        calls.append(1)
        return original(*args, **kwargs)

    monkeypatch.setattr(evidence_module, "eigh", counting_eigh)
    result = evidence_procedure(Phi, y, tol=1e-10)

    assert result.n_iter > 1
    assert len(calls) == 1


def test_eigenvalues_are_non_negative(rbf_design) -> None:
    Phi, _ = rbf_design
    nu0 = gram_eigenvalues(Phi)

    assert nu0.shape == (Phi.shape[1],)
    assert np.all(nu0 >= 0)


def test_non_convergence_is_reported(linear_problem) -> None:
    Phi, y = linear_problem
    with pytest.warns(ConvergenceWarning):
        result = evidence_procedure(Phi, y, tol=1e-12, max_iter=1)

    assert not result.converged
    assert result.n_iter == 1
    assert result.sigma2 > 0 and result.lambda2 > 0


def test_effective_parameters_reaching_n_is_degenerate() -> None:
    # λ² so large that 1/λ² vanishes: every eigen-direction counts fully, γ = N
    y = np.array([1.0, -1.0, 0.5])
    with pytest.raises(DegenerateEvidenceError):
        evidence_update(np.eye(3), y, 1.0, 1e20)
    with pytest.raises(DegenerateEvidenceError):
        evidence_procedure(np.eye(3), y, lambda2=1e20)


def test_zero_design_is_degenerate() -> None:
    with pytest.raises(DegenerateEvidenceError):
        evidence_procedure(np.zeros((4, 2)), np.ones(4))


@pytest.mark.parametrize("kwargs", [
    {"tol": 0.0},
    {"tol": -1e-4},
    {"max_iter": 0},
    {"sigma2": 0.0},
    {"lambda2": -1.0},
])
def test_invalid_arguments(linear_problem, kwargs) -> None:
    Phi, y = linear_problem
    with pytest.raises(InvalidParameterError):
        evidence_procedure(Phi, y, **kwargs)
    with pytest.raises(InvalidParameterError):
        em_procedure(Phi, y, **kwargs)


def test_em_never_decreases_evidence(linear_problem) -> None:
    Phi, y = linear_problem
    result = em_procedure(Phi, y, max_iter=50, tol=1e-12)
    log_evidences = [h[2] for h in result.history]

    assert np.all(np.diff(log_evidences) >= -1e-8)


def test_em_agrees_with_fixed_point(linear_problem) -> None:
    Phi, y = linear_problem
    fixed_point = evidence_procedure(Phi, y, tol=1e-10)
    em = em_procedure(Phi, y, tol=1e-10, max_iter=10000)

    assert em.converged
    assert np.isclose(em.sigma2, fixed_point.sigma2, rtol=1e-3)
    assert np.isclose(em.lambda2, fixed_point.lambda2, rtol=1e-2)
    assert np.isclose(em.log_evidence, fixed_point.log_evidence, atol=1e-3)


def test_rbf_design_with_more_features_than_samples(rbf_design) -> None:
    Phi, t = rbf_design
    assert Phi.shape[1] > Phi.shape[0]

    result = evidence_procedure(Phi, t)

    assert result.converged
    assert 0 < result.gamma < len(t)
    assert result.sigma2 > 0 and result.lambda2 > 0
    assert np.isclose(result.log_evidence,
                      log_marginal_likelihood(Phi, t, result.sigma2, result.lambda2))


def test_em_on_rbf_design_reaches_same_evidence(rbf_design) -> None:
    Phi, t = rbf_design
    fixed_point = evidence_procedure(Phi, t)
    em = em_procedure(Phi, t)

    assert em.converged
    assert np.isclose(em.log_evidence, fixed_point.log_evidence, atol=0.05)


def test_precomputed_eigenvalues_must_match_features(linear_problem) -> None:
    Phi, y = linear_problem
    nu0 = gram_eigenvalues(Phi)

    assert evidence_update(Phi, y, 1.0, 1.0, nu0)[:3] == evidence_update(Phi, y, 1.0, 1.0)[:3]
    with pytest.raises(InvalidParameterError):
        evidence_update(Phi, y, 1.0, 1.0, nu0[:-1])
