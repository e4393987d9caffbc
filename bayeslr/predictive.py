"""
3. 贝叶斯预测 (Bayesian Prediction)
===================================

给定新的基函数向量φ₀，贝叶斯通过积分而不是代入点估计来预测：

p(y₀|Φ, y, φ₀) = ∫ N(y₀; θᵀφ₀, σ²) N(θ; mₙ, Cₙ) dθ
               = N(y₀; mₙᵀφ₀, σ² + φ₀ᵀCₙφ₀)

要区分两种预测：
1. 均值信号 φ₀ᵀθ 的后验：N(φ₀ᵀmₙ, φ₀ᵀCₙφ₀)
   高斯的线性组合仍是高斯
2. 观测 y₀ 本身：N(φ₀ᵀmₙ, φ₀ᵀCₙφ₀ + σ²)
   多了一层观测噪声，所以区间更宽

一般情况下积分没有闭式解，用蒙特卡洛：
p(y₀|Φ, y, φ₀) ≈ (1/M) Σₘ N(y₀; φ₀ᵀθ⁽ᵐ⁾, σ²)，θ⁽ᵐ⁾ ~ N(mₙ, Cₙ)

这是一个集成方法：每个θ⁽ᵐ⁾是一个模型，
所有模型都对最终预测有贡献，没有哪个模型独占话语权
（不像MLE和MAP只代入一个点）。
"""

import numpy as np
from typing import Tuple, Optional, Dict, NamedTuple
from scipy import stats

from .conjugate_regression import GaussianPosterior
from .exceptions import InvalidParameterError
from .linalg_utils import check_positive


class PredictiveDistribution(NamedTuple):
    """闭式预测分布，每个测试点一个高斯"""
    mean: np.ndarray
    signal_var: np.ndarray
    observation_var: np.ndarray

    def interval(self, level: float = 0.9,
                 observation: bool = True) -> Tuple[np.ndarray, np.ndarray]:
        """
        中心置信区间

        level=0.9 对应 [5%, 95%]，即 均值 ± 1.645σ。

        Args:
            level: 置信水平
            observation: True用观测方差，False用均值信号方差
        """
        if not 0 < level < 1:
            raise InvalidParameterError(f"置信水平必须在(0,1)之间，得到{level}")
        var = self.observation_var if observation else self.signal_var
        z = stats.norm.ppf(0.5 + level / 2)
        half = z * np.sqrt(var)
        return self.mean - half, self.mean + half


class MonteCarloPrediction(NamedTuple):
    """蒙特卡洛预测：样本均值和分位数"""
    mean: np.ndarray
    quantiles: np.ndarray
    samples: np.ndarray


def _as_batch(Phi0: np.ndarray, dim: int) -> np.ndarray:
    """单个φ₀视为只有一行的Φ₀"""
    Phi0 = np.atleast_2d(np.asarray(Phi0, dtype=float))
    if Phi0.shape[1] != dim:
        raise InvalidParameterError(f"基函数向量长度应为{dim}，得到{Phi0.shape[1]}")
    return Phi0


def predictive_distribution(posterior: GaussianPosterior,
                            Phi0: np.ndarray,
                            sigma2: float) -> PredictiveDistribution:
    """
    闭式预测分布

    均值：Φ₀mₙ
    均值信号方差：diag(Φ₀CₙΦ₀ᵀ)
    观测方差：diag(Φ₀CₙΦ₀ᵀ) + σ²

    Args:
        posterior: 后验 (mₙ, Cₙ)
        Phi0: 新的基函数向量φ₀，或一批 Φ₀ (n, d)
        sigma2: 噪声方差

    Returns:
        PredictiveDistribution
    """
    sigma2 = check_positive(sigma2, "噪声方差σ²")
    mN, CN = posterior
    Phi0 = _as_batch(Phi0, len(mN))

    mean = Phi0 @ mN
    # 只需要对角线：逐行计算 φᵀCφ
    signal_var = np.sum((Phi0 @ CN) * Phi0, axis=1)

    return PredictiveDistribution(mean, signal_var, signal_var + sigma2)


def monte_carlo_predictive(posterior: GaussianPosterior,
                           Phi0: np.ndarray,
                           n_samples: int = 1000,
                           quantiles: Tuple[float, ...] = (0.05, 0.95),
                           seed: Optional[int] = None) -> MonteCarloPrediction:
    """
    蒙特卡洛预测均值信号

    1. 采样 θ⁽ᵐ⁾ ~ N(mₙ, Cₙ)
    2. 计算 Φ₀θ⁽ᵐ⁾
    3. 报告样本均值和分位数

    M→∞ 时样本均值收敛到 Φ₀mₙ，误差 O(1/√M)。

    Args:
        posterior: 后验
        Phi0: 基函数向量或矩阵
        n_samples: 采样数M
        quantiles: 要报告的分位数
        seed: 随机种子

    Returns:
        MonteCarloPrediction，samples的shape为(M, n)
    """
    quantiles = np.asarray(quantiles, dtype=float)
    if np.any(quantiles < 0) or np.any(quantiles > 1):
        raise InvalidParameterError("分位数必须在[0,1]之间")

    Phi0 = _as_batch(Phi0, posterior.dim)
    thetas = posterior.sample(n_samples, seed)
    samples = thetas @ Phi0.T

    return MonteCarloPrediction(samples.mean(axis=0),
                                np.quantile(samples, quantiles, axis=0),
                                samples)


def demonstrate_prediction(posterior: GaussianPosterior,
                           Phi_test: np.ndarray,
                           t_test: np.ndarray,
                           sigma2: float,
                           n_samples: int = 100,
                           level: float = 0.9,
                           seed: Optional[int] = None) -> Dict:
    """
    演示贝叶斯预测

    比较蒙特卡洛均值和理论均值，
    以及均值信号区间和观测区间的宽度。

    Args:
        posterior: 后验
        Phi_test: 测试点的设计矩阵
        t_test: 测试点的真实信号
        sigma2: 噪声方差
        n_samples: 蒙特卡洛采样数
        level: 置信水平
        seed: 随机种子
    """
    print("\n贝叶斯预测")
    print("=" * 60)

    pred = predictive_distribution(posterior, Phi_test, sigma2)
    mc = monte_carlo_predictive(posterior, Phi_test, n_samples, seed=seed)

    print(f"测试点数: {len(pred.mean)}, 蒙特卡洛采样: M={n_samples}")
    print(f"MC均值与理论均值的最大差距: {np.max(np.abs(mc.mean - pred.mean)):.4f}")

    lo_s, hi_s = pred.interval(level, observation=False)
    lo_o, hi_o = pred.interval(level, observation=True)
    print(f"{level:.0%}区间平均宽度: 均值信号={np.mean(hi_s - lo_s):.4f}, "
          f"观测={np.mean(hi_o - lo_o):.4f}")

    coverage = np.mean((t_test >= lo_s) & (t_test <= hi_s))
    print(f"真实信号落在均值信号区间内的比例: {coverage:.2%}")
    print(f"预测RMSE: {np.sqrt(np.mean((pred.mean - t_test) ** 2)):.4f}")

    print("\n观察：")
    print("1. MC均值随M增大收敛到理论均值")
    print("2. 观测区间比均值信号区间宽（多了σ²）")
    print("3. 远离数据的地方不确定性增大")

    return {'predictive': pred, 'monte_carlo': mc}
