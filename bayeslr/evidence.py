"""
4. 证据近似 (The Evidence Procedure)
===================================

前面的σ²、λ²都是随手取的1.0，显然不适合数据。
证据近似用一种有原则的方式优化超参数，而不需要交叉验证。

思路：
- 以贝叶斯方式推断θ：求给定σ²、λ²时的后验
- 把σ²、λ²当作超参数，最大化模型证据（边际似然）

p(y|σ², λ², Φ) = ∫ p(θ|λ²) p(y|θ, σ², Φ) dθ
              = N(y; 0, σ²I + λ²ΦΦᵀ)

它可以看作σ²、λ²的似然，所以这本质上是超参数的最大似然。

令导数为0得到不动点迭代（Bishop 3.5.1, 3.5.2）：
σ̂² = ||y - Φmₙ||² / (N - γ)
λ̂² = mₙᵀmₙ / γ

其中 γ = Σᵢ νᵢ/(1/λ² + νᵢ) 是有效参数数量，
νᵢ 是 ΦᵀΦ/σ² 的特征值。

注意 νᵢ = ν⁰ᵢ/σ²，ν⁰ᵢ 是 ΦᵀΦ 的特征值，
所以 ΦᵀΦ 的特征分解只需要计算一次，之后每次迭代只做缩放。

另一种做法是EM算法：把θ当作隐变量，
E步用后验计算 E[θθᵀ] = mₙmₙᵀ + Cₙ，M步对σ²、λ²解析最大化。
"""

import logging
import warnings
import numpy as np
from typing import Tuple, List, Optional, Dict, NamedTuple
from scipy.linalg import eigh, solve_triangular

from .conjugate_regression import GaussianPosterior, bayesian_conjugate_lr, _check_design
from .exceptions import DegenerateEvidenceError, InvalidParameterError, ConvergenceWarning
from .linalg_utils import check_positive, spd_cholesky

log = logging.getLogger(__name__)


class EvidenceResult(NamedTuple):
    """
    超参数优化的结果

    前四项与 (σ², λ², 后验, 迭代次数) 的四元组相同。
    converged为False表示迭代次数用尽仍未满足容差，
    此时返回的是最后一次迭代的值。
    """
    sigma2: float
    lambda2: float
    posterior: GaussianPosterior
    n_iter: int
    converged: bool
    gamma: float
    log_evidence: float
    history: List[Tuple[float, float, float]]


def log_marginal_likelihood(Phi: np.ndarray, y: np.ndarray,
                            sigma2: float, lambda2: float) -> float:
    """
    对数边际似然（证据）

    log p(y) = -0.5[N·log(2π) + log|C| + yᵀC⁻¹y]
    其中 C = σ²I + λ²ΦΦᵀ

    用Cholesky分解计算行列式和二次型。
    """
    Phi, y = _check_design(Phi, y)
    sigma2 = check_positive(sigma2, "噪声方差σ²")
    lambda2 = check_positive(lambda2, "先验方差λ²")
    N = len(y)

    C = sigma2 * np.eye(N) + lambda2 * Phi @ Phi.T
    L = spd_cholesky(C, "边际协方差σ²I + λ²ΦΦᵀ")

    # log|C| = 2·Σlog(L_ii)
    log_det_C = 2 * np.sum(np.log(np.diag(L)))

    # yᵀC⁻¹y = ||L⁻¹y||²
    alpha = solve_triangular(L, y, lower=True)
    quadratic = alpha @ alpha

    return -0.5 * (N * np.log(2 * np.pi) + log_det_C + quadratic)


def gram_eigenvalues(Phi: np.ndarray) -> np.ndarray:
    """
    ΦᵀΦ的特征值ν⁰

    ΦᵀΦ半正定，舍入误差可能产生-1e-15量级的负特征值，
    截断到0。
    """
    nu0 = eigh(Phi.T @ Phi, eigvals_only=True)
    return np.clip(nu0, 0.0, None)


def evidence_update(Phi: np.ndarray, y: np.ndarray,
                    sigma2: float, lambda2: float,
                    eigenvalues: Optional[np.ndarray] = None) -> Tuple[float, float, float, GaussianPosterior]:
    """
    证据近似的一步不动点更新

    1. 计算后验 (mₙ, Cₙ)，C₀=λ²I，Σ=σ²I
    2. sse₁ = ||y - Φmₙ||²，sse₂ = mₙᵀmₙ
    3. νᵢ = ν⁰ᵢ/σ²，γ = Σ νᵢ/(1/λ² + νᵢ)
    4. σ²_new = sse₁/(N - γ)，λ²_new = sse₂/γ

    Args:
        Phi: 设计矩阵
        y: 目标
        sigma2, lambda2: 当前超参数
        eigenvalues: 预先计算的ΦᵀΦ特征值，None则现算

    Returns:
        (σ²_new, λ²_new, γ, 当前超参数下的后验)

    Raises:
        DegenerateEvidenceError: γ ≥ N 或 γ ≤ 0
        InvalidParameterError: 特征值个数与特征维度d不符
    """
    Phi, y = _check_design(Phi, y)
    N, d = Phi.shape
    if eigenvalues is None:
        nu0 = gram_eigenvalues(Phi)
    else:
        nu0 = np.asarray(eigenvalues, dtype=float).ravel()
        if len(nu0) != d:
            raise InvalidParameterError(f"特征值个数应为{d}，得到{len(nu0)}")

    posterior = bayesian_conjugate_lr(Phi, y, sigma2, np.zeros(d), lambda2)
    mN = posterior.mean

    residual = y - Phi @ mN
    sse1 = residual @ residual
    sse2 = mN @ mN

    nu = nu0 / sigma2
    gamma = np.sum(nu / (1 / lambda2 + nu))

    if gamma >= N:
        raise DegenerateEvidenceError(
            f"有效参数数γ={gamma:.4f}不小于样本数N={N}，σ²的更新无定义")
    if gamma <= 0:
        raise DegenerateEvidenceError(f"有效参数数γ={gamma:.4g}非正，λ²的更新无定义")

    return sse1 / (N - gamma), sse2 / gamma, gamma, posterior


def _check_iteration_args(tol: float, max_iter: int) -> None:
    check_positive(tol, "收敛容差")
    if max_iter <= 0:
        raise InvalidParameterError(f"最大迭代次数必须为正，得到{max_iter}")


def evidence_procedure(Phi: np.ndarray, y: np.ndarray,
                       tol: float = 1e-4,
                       max_iter: int = 1000,
                       sigma2: float = 1.0,
                       lambda2: float = 1.0) -> EvidenceResult:
    """
    用证据近似估计σ²和λ²

    迭代 evidence_update 直到
    |σ²_new - σ²| + |λ²_new - λ²| < tol。

    迭代次数用尽时不抛异常：返回最后的值，
    converged=False，并发出ConvergenceWarning。

    Args:
        Phi: 设计矩阵
        y: 目标
        tol: 收敛容差
        max_iter: 最大迭代次数
        sigma2, lambda2: 初始值

    Returns:
        EvidenceResult
    """
    Phi, y = _check_design(Phi, y)
    _check_iteration_args(tol, max_iter)
    sigma2 = check_positive(sigma2, "初始σ²")
    lambda2 = check_positive(lambda2, "初始λ²")

    # 只做一次特征分解
    nu0 = gram_eigenvalues(Phi)

    history = []
    converged = False
    gamma = np.nan
    n_iter = 0

    for n_iter in range(1, max_iter + 1):
        sigma2_new, lambda2_new, gamma, _ = evidence_update(Phi, y, sigma2, lambda2, nu0)
        history.append((sigma2_new, lambda2_new, gamma))

        change = abs(sigma2_new - sigma2) + abs(lambda2_new - lambda2)
        log.debug("iter %d: sigma2=%.6g lambda2=%.6g gamma=%.4f change=%.3g",
                  n_iter, sigma2_new, lambda2_new, gamma, change)

        sigma2, lambda2 = sigma2_new, lambda2_new
        if change < tol:
            converged = True
            break

    if not converged:
        warnings.warn(f"证据近似在{max_iter}次迭代内未收敛（容差{tol}）",
                      ConvergenceWarning)

    posterior = bayesian_conjugate_lr(Phi, y, sigma2, np.zeros(Phi.shape[1]), lambda2)
    log_evidence = log_marginal_likelihood(Phi, y, sigma2, lambda2)
    log.info("evidence procedure: sigma2=%.6g lambda2=%.6g gamma=%.4f iters=%d converged=%s",
             sigma2, lambda2, gamma, n_iter, converged)

    return EvidenceResult(sigma2, lambda2, posterior, n_iter, converged,
                          float(gamma), log_evidence, history)


def em_procedure(Phi: np.ndarray, y: np.ndarray,
                 tol: float = 1e-4,
                 max_iter: int = 1000,
                 sigma2: float = 1.0,
                 lambda2: float = 1.0) -> EvidenceResult:
    """
    用EM算法估计σ²和λ²

    θ是隐变量。E步求期望完全数据对数似然
    L(σ², λ²) = E[ln p(θ|λ²) + ln p(y|Φ, σ², θ)]，
    期望对后验 N(mₙ, Cₙ) 取，需要：
    E[θθᵀ] = mₙmₙᵀ + Cₙ

    M步：
    λ² = (mₙᵀmₙ + tr(Cₙ)) / d
    σ² = (||y - Φmₙ||² + tr(ΦCₙΦᵀ)) / N

    EM保证边际似然单调不减，但通常比不动点迭代收敛慢。
    history中的第三项记录每步之前的对数证据。
    """
    Phi, y = _check_design(Phi, y)
    _check_iteration_args(tol, max_iter)
    sigma2 = check_positive(sigma2, "初始σ²")
    lambda2 = check_positive(lambda2, "初始λ²")
    N, d = Phi.shape

    history = []
    converged = False
    n_iter = 0

    for n_iter in range(1, max_iter + 1):
        # E步
        mN, CN = bayesian_conjugate_lr(Phi, y, sigma2, np.zeros(d), lambda2)

        # M步
        residual = y - Phi @ mN
        lambda2_new = (mN @ mN + np.trace(CN)) / d
        sigma2_new = (residual @ residual + np.sum((Phi @ CN) * Phi)) / N

        history.append((sigma2_new, lambda2_new,
                        log_marginal_likelihood(Phi, y, sigma2, lambda2)))

        change = abs(sigma2_new - sigma2) + abs(lambda2_new - lambda2)
        log.debug("EM iter %d: sigma2=%.6g lambda2=%.6g change=%.3g",
                  n_iter, sigma2_new, lambda2_new, change)

        sigma2, lambda2 = sigma2_new, lambda2_new
        if change < tol:
            converged = True
            break

    if not converged:
        warnings.warn(f"EM在{max_iter}次迭代内未收敛（容差{tol}）", ConvergenceWarning)

    posterior = bayesian_conjugate_lr(Phi, y, sigma2, np.zeros(d), lambda2)

    # 有效参数数只用于报告
    nu = gram_eigenvalues(Phi) / sigma2
    gamma = float(np.sum(nu / (1 / lambda2 + nu)))

    return EvidenceResult(sigma2, lambda2, posterior, n_iter, converged, gamma,
                          log_marginal_likelihood(Phi, y, sigma2, lambda2), history)


def demonstrate_evidence_approximation(Phi: np.ndarray, y: np.ndarray,
                                       tol: float = 1e-4,
                                       max_iter: int = 1000) -> Dict:
    """
    证据近似（经验贝叶斯）

    自动确定超参数σ²和λ²，并与EM的结果比较。

    Args:
        Phi: 设计矩阵
        y: 目标
        tol: 收敛容差
        max_iter: 最大迭代次数

    Returns:
        两种方法的结果
    """
    print("\n证据近似（自动确定超参数）")
    print("=" * 60)

    N, d = Phi.shape
    start = log_marginal_likelihood(Phi, y, 1.0, 1.0)

    result = evidence_procedure(Phi, y, tol=tol, max_iter=max_iter)

    print("迭代过程（每100次）:")
    print("-" * 40)
    for i, (s2, l2, g) in enumerate(result.history):
        if i % 100 == 0:
            print(f"Iter {i + 1:4d}: σ²={s2:.4f}, λ²={l2:.4f}, γ={g:.2f}")
    print("-" * 40)

    status = "收敛" if result.converged else "未收敛"
    print(f"{status}，共{result.n_iter}次迭代")
    print(f"最优超参数: σ²={result.sigma2:.4f}, λ²={result.lambda2:.4f}")
    print(f"有效参数数: γ={result.gamma:.2f} (总参数d={d}, 样本N={N})")
    print(f"对数证据: {start:.2f} (σ²=λ²=1) -> {result.log_evidence:.2f}")

    em_result = em_procedure(Phi, y, tol=tol, max_iter=max_iter)
    print(f"\nEM: σ²={em_result.sigma2:.4f}, λ²={em_result.lambda2:.4f}, "
          f"迭代{em_result.n_iter}次, 对数证据={em_result.log_evidence:.2f}")

    print("\n观察：")
    print("1. 不需要验证集或交叉验证")
    print("2. γ远小于d：数据只约束了少数几个方向")
    print("3. 两种方法最大化的是同一个目标，EM收敛更慢")

    return {'evidence': result, 'em': em_result}
