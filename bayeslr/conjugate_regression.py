"""
2. 最大似然、MAP与共轭贝叶斯线性回归
=====================================

模型：
y = Φθ + ε, ε ~ N(0, Σ)，通常 Σ = σ²I

最大似然（正规方程）：
θ_ML = (ΦᵀΦ)⁻¹Φᵀy

MAP / 岭回归：
损失 L(θ) = 1/(2σ²)·||y - Φθ||² + 1/(2λ²)·||θ||²
等价于在零均值各向同性高斯先验 p(θ) = N(0, λ²I) 下最大化后验，
θ_MAP = (ΦᵀΦ/σ² + I/λ²)⁻¹ Φᵀy/σ²

λ² → ∞ 时先验变平，θ_MAP → θ_ML。

共轭贝叶斯线性回归：
先验：θ ~ N(m₀, C₀)
似然：y|θ ~ N(Φθ, Σ)
后验：θ|y ~ N(mₙ, Cₙ)

配方（complete the square）得到：
Cₙ = (C₀⁻¹ + ΦᵀΣ⁻¹Φ)⁻¹
mₙ = Cₙ(C₀⁻¹m₀ + ΦᵀΣ⁻¹y)

- 后验精度 = 先验精度 + 数据精度
- 后验均值 = 精度加权的先验和数据信息
- 高斯后验的众数就是均值，所以 mₙ = θ_MAP
"""

import numpy as np
from typing import Tuple, List, Optional, Dict, Union, NamedTuple
from scipy import stats

from .exceptions import InvalidParameterError
from .linalg_utils import (
    check_positive,
    as_covariance,
    spd_cholesky,
    spd_inverse,
)


class GaussianPosterior(NamedTuple):
    """
    权重θ的高斯分布 N(mean, cov)

    可以直接解包：mN, CN = posterior
    """
    mean: np.ndarray
    cov: np.ndarray

    @property
    def dim(self) -> int:
        return len(self.mean)

    def sample(self, n_samples: int = 1, seed: Optional[int] = None) -> np.ndarray:
        """
        从分布中采样权重

        使用Cholesky分解生成相关高斯样本：
        θ = m + L·z, 其中 C = L·Lᵀ, z ~ N(0, I)

        Args:
            n_samples: 采样数量M
            seed: 随机种子

        Returns:
            shape (n_samples, dim)
        """
        if n_samples <= 0:
            raise InvalidParameterError(f"采样数必须为正，得到{n_samples}")
        rng = np.random.default_rng(seed)
        L = spd_cholesky(self.cov, "后验协方差")
        z = rng.standard_normal((n_samples, self.dim))
        return self.mean + z @ L.T


def _check_design(Phi: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """设计矩阵和目标向量的形状/有限性检查"""
    Phi = np.atleast_2d(np.asarray(Phi, dtype=float))
    y = np.asarray(y, dtype=float).ravel()
    if Phi.shape[0] != len(y):
        raise InvalidParameterError(
            f"设计矩阵有{Phi.shape[0]}行，但目标有{len(y)}个")
    if not np.all(np.isfinite(Phi)) or not np.all(np.isfinite(y)):
        raise InvalidParameterError("设计矩阵或目标包含NaN/Inf")
    return Phi, y


def bayesian_conjugate_lr(Phi: np.ndarray, y: np.ndarray,
                          Sigma: Union[float, np.ndarray],
                          m0: np.ndarray,
                          C0: Union[float, np.ndarray]) -> GaussianPosterior:
    """
    共轭贝叶斯线性回归的后验

    Cₙ = (C₀⁻¹ + ΦᵀΣ⁻¹Φ)⁻¹
    mₙ = Cₙ(C₀⁻¹m₀ + ΦᵀΣ⁻¹y)

    Args:
        Phi: 设计矩阵，shape (N, d)
        y: 目标，shape (N,)
        Sigma: 观测噪声协方差 (N, N)，或标量σ²（表示σ²I）
        m0: 先验均值，shape (d,)
        C0: 先验协方差 (d, d)，或标量λ²（表示λ²I）

    Returns:
        后验分布 N(mₙ, Cₙ)

    Raises:
        SingularMatrixError: C₀、Σ或后验精度奇异/非正定（包括标量0）
        InvalidParameterError: 形状不符，或标量协方差为负/非有限
    """
    Phi, y = _check_design(Phi, y)
    N, d = Phi.shape

    m0 = np.asarray(m0, dtype=float).ravel()
    if len(m0) != d:
        raise InvalidParameterError(f"先验均值长度应为{d}，得到{len(m0)}")

    C0 = as_covariance(C0, d, "先验协方差C₀")
    Sigma = as_covariance(Sigma, N, "噪声协方差Σ")

    C0_inv = spd_inverse(C0, "先验协方差C₀")
    Sigma_inv = spd_inverse(Sigma, "噪声协方差Σ")

    # 后验精度 = 先验精度 + 数据精度
    precision = C0_inv + Phi.T @ Sigma_inv @ Phi
    CN = spd_inverse(precision, "后验精度C₀⁻¹ + ΦᵀΣ⁻¹Φ")

    mN = CN @ (C0_inv @ m0 + Phi.T @ Sigma_inv @ y)

    return GaussianPosterior(mN, CN)


def mle(Phi: np.ndarray, y: np.ndarray) -> np.ndarray:
    """
    最大似然估计（正规方程）

    θ_ML = (ΦᵀΦ)⁻¹Φᵀy

    基函数线性相关时ΦᵀΦ奇异，这里直接报错，
    不用伪逆掩盖问题。
    """
    Phi, y = _check_design(Phi, y)
    gram_inv = spd_inverse(Phi.T @ Phi, "ΦᵀΦ")
    return gram_inv @ Phi.T @ y


def map_estimate(Phi: np.ndarray, y: np.ndarray,
                 sigma2: float, lambda2: float) -> np.ndarray:
    """
    MAP / 岭回归估计

    θ_MAP = (ΦᵀΦ/σ² + I/λ²)⁻¹ Φᵀy/σ²

    Args:
        sigma2: 噪声方差σ²
        lambda2: 先验方差λ²，np.inf表示平坦先验（退化为最大似然）
    """
    Phi, y = _check_design(Phi, y)
    sigma2 = check_positive(sigma2, "噪声方差σ²")
    if not lambda2 > 0:
        raise InvalidParameterError(f"先验方差λ²必须为正，得到{lambda2}")

    d = Phi.shape[1]
    A = Phi.T @ Phi / sigma2 + np.eye(d) / lambda2
    return spd_inverse(A, "ΦᵀΦ/σ² + I/λ²") @ Phi.T @ y / sigma2


def ridge_loss(theta: np.ndarray, sigma2: float, lambda2: float,
               Phi: np.ndarray, y: np.ndarray) -> float:
    """L(θ) = 1/(2σ²)·||Φθ - y||² + 1/(2λ²)·θᵀθ"""
    sigma2 = check_positive(sigma2, "噪声方差σ²")
    lambda2 = check_positive(lambda2, "先验方差λ²")
    residual = Phi @ theta - y
    return 0.5 * residual @ residual / sigma2 + 0.5 * theta @ theta / lambda2


def log_posterior(theta: np.ndarray, sigma2: float, lambda2: float,
                  Phi: np.ndarray, y: np.ndarray) -> float:
    """
    未归一化的对数后验

    log p(θ|y) = log N(θ; 0, λ²I) + log N(y; Φθ, σ²I) + const

    与 -ridge_loss 只差一个常数。
    """
    sigma2 = check_positive(sigma2, "噪声方差σ²")
    lambda2 = check_positive(lambda2, "先验方差λ²")
    log_prior = np.sum(stats.norm.logpdf(theta, 0, np.sqrt(lambda2)))
    log_lik = np.sum(stats.norm.logpdf(y, Phi @ theta, np.sqrt(sigma2)))
    return log_prior + log_lik


def log_posterior_grad(theta: np.ndarray, sigma2: float, lambda2: float,
                       Phi: np.ndarray, y: np.ndarray) -> np.ndarray:
    """∇log p(θ|y) = Φᵀ(y - Φθ)/σ² - θ/λ²"""
    sigma2 = check_positive(sigma2, "噪声方差σ²")
    lambda2 = check_positive(lambda2, "先验方差λ²")
    return Phi.T @ (y - Phi @ theta) / sigma2 - theta / lambda2


def map_gradient_ascent(Phi: np.ndarray, y: np.ndarray,
                        sigma2: float, lambda2: float,
                        learning_rate: float = 0.01,
                        n_steps: int = 1500,
                        theta0: Optional[np.ndarray] = None) -> Tuple[np.ndarray, List[float]]:
    """
    梯度上升求MAP

    θ ← θ + η·∇log p(θ|y)

    闭式解存在时这只是演示：
    迭代足够多次后应收敛到map_estimate的结果。
    η需要小于 2/λ_max(ΦᵀΦ/σ² + I/λ²)，否则发散。

    Args:
        learning_rate: 步长η
        n_steps: 迭代次数
        theta0: 初始值，默认全0

    Returns:
        theta: 最终参数
        history: 每一步的对数后验
    """
    Phi, y = _check_design(Phi, y)
    sigma2 = check_positive(sigma2, "噪声方差σ²")
    lambda2 = check_positive(lambda2, "先验方差λ²")
    learning_rate = check_positive(learning_rate, "步长")

    theta = np.zeros(Phi.shape[1]) if theta0 is None else np.array(theta0, dtype=float)
    history = []

    for _ in range(n_steps):
        theta = theta + learning_rate * log_posterior_grad(theta, sigma2, lambda2, Phi, y)
        history.append(log_posterior(theta, sigma2, lambda2, Phi, y))

    return theta, history


def sequential_posterior(Phi: np.ndarray, y: np.ndarray, sigma2: float,
                         m0: np.ndarray, C0: Union[float, np.ndarray],
                         batch_size: int = 1) -> GaussianPosterior:
    """
    顺序贝叶斯学习

    昨天的后验是今天的先验：
    每来一批数据，就以当前后验为先验再做一次共轭更新。

    因为观测在给定θ时条件独立，结果与一次性使用全部数据相同。

    Args:
        sigma2: 噪声方差
        m0, C0: 初始先验
        batch_size: 每批数据的大小

    Returns:
        处理完全部数据后的后验
    """
    Phi, y = _check_design(Phi, y)
    if batch_size <= 0:
        raise InvalidParameterError(f"批大小必须为正，得到{batch_size}")

    d = Phi.shape[1]
    posterior = GaussianPosterior(np.asarray(m0, dtype=float).ravel(),
                                  as_covariance(C0, d, "先验协方差C₀"))

    for start in range(0, len(y), batch_size):
        stop = start + batch_size
        posterior = bayesian_conjugate_lr(Phi[start:stop], y[start:stop],
                                          sigma2, posterior.mean, posterior.cov)

    return posterior


def demonstrate_regression(Phi: np.ndarray, y: np.ndarray,
                           sigma2: float = 1.0,
                           lambda2_values: List[float] = [0.001, 1.0, 10.0, np.inf]) -> Dict:
    """
    演示最大似然与MAP

    展示先验方差λ²如何控制正则化强度：
    λ²小 → 强正则化，权重被压向0
    λ² → ∞ → 无正则化，接近最大似然

    Args:
        Phi: 设计矩阵
        y: 目标
        sigma2: 噪声方差
        lambda2_values: 要比较的先验方差

    Returns:
        各估计的结果
    """
    print("\n最大似然与MAP（岭回归）")
    print("=" * 60)

    results = {}

    try:
        theta_ml = mle(Phi, y)
        results['ml'] = theta_ml
        print(f"最大似然: ||θ||={np.linalg.norm(theta_ml):.2e}, "
              f"训练RMSE={np.sqrt(np.mean((Phi @ theta_ml - y) ** 2)):.4f}")
    except np.linalg.LinAlgError as e:
        # 这正是要演示的：RBF设计矩阵往往接近奇异
        print(f"最大似然失败: {e}")

    print("-" * 60)
    for lambda2 in lambda2_values:
        try:
            theta = map_estimate(Phi, y, sigma2, lambda2)
        except np.linalg.LinAlgError as e:
            print(f"λ²={lambda2}: {e}")
            continue
        results[lambda2] = theta
        rmse = np.sqrt(np.mean((Phi @ theta - y) ** 2))
        print(f"λ²={lambda2:>8}: ||θ||={np.linalg.norm(theta):.2e}, 训练RMSE={rmse:.4f}")

    # 梯度上升与闭式解对比
    theta_ga, history = map_gradient_ascent(Phi, y, sigma2, 1.0)
    theta_map = map_estimate(Phi, y, sigma2, 1.0)
    print(f"\n梯度上升1500步后与闭式MAP的差距: "
          f"{np.linalg.norm(theta_ga - theta_map):.2e}")
    print(f"对数后验: {history[0]:.2f} -> {history[-1]:.2f}")

    print("\n观察：")
    print("1. λ²越小，权重范数越小（先验越强）")
    print("2. λ²→∞时MAP退化为最大似然")
    print("3. MAP是'穷人的贝叶斯近似'：只取后验的众数")

    return results


def demonstrate_posterior(Phi: np.ndarray, y: np.ndarray,
                          sigma2: float = 1.0,
                          lambda2: float = 1.0) -> Dict:
    """
    演示共轭后验

    1. 后验均值等于MAP
    2. 顺序学习与批量学习结果相同

    Args:
        Phi: 设计矩阵
        y: 目标
        sigma2: 噪声方差
        lambda2: 先验方差
    """
    print("\n共轭贝叶斯线性回归")
    print("=" * 60)

    d = Phi.shape[1]
    posterior = bayesian_conjugate_lr(Phi, y, sigma2, np.zeros(d), lambda2)
    theta_map = map_estimate(Phi, y, sigma2, lambda2)

    eigvals = np.linalg.eigvalsh(posterior.cov)
    print(f"参数维度: d={d}")
    print(f"||mₙ - θ_MAP|| = {np.linalg.norm(posterior.mean - theta_map):.2e}")
    print(f"Cₙ特征值范围: [{eigvals.min():.2e}, {eigvals.max():.2e}]")

    sequential = sequential_posterior(Phi, y, sigma2, np.zeros(d), lambda2, batch_size=10)
    print(f"顺序学习(每批10个)与批量学习的均值差: "
          f"{np.linalg.norm(sequential.mean - posterior.mean):.2e}")

    print("\n观察：")
    print("1. 高斯后验的众数等于均值，所以mₙ就是MAP")
    print("2. Cₙ对称正定，描述了参数的不确定性")
    print("3. 后验可以逐批更新，顺序无关")

    return {'posterior': posterior, 'map': theta_map}
