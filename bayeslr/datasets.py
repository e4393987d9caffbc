"""
阶跃信号数据集 (Step Signal Dataset)
====================================

演示用的回归数据：一个分段常数/线性的隐藏信号加高斯噪声。

信号：
- (-1, 1) 上取值1（一个"台阶"）
- (-8, -7) 上是一段斜线 k·x + (1.6 - k·(-8))
- 其余位置为0

这种信号对全局基函数（多项式）很难拟合，
局部的RBF基函数则可以很好地描述它。
"""

import numpy as np
from typing import Optional, Tuple

from .exceptions import InvalidParameterError


def step_signal(x: np.ndarray, k: float = -0.2) -> np.ndarray:
    """
    隐藏信号

    Args:
        x: 输入，标量或数组
        k: 斜线段的斜率

    Returns:
        与x同形状的信号值
    """
    x = np.asarray(x, dtype=float)
    signal = np.zeros_like(x)
    signal = np.where((x > -1) & (x < 1), 1.0, signal)
    signal = np.where((x > -8) & (x < -7), k * x + (1.6 - k * (-8)), signal)
    return signal


def generate_step_data(n_samples: int = 50,
                       noise_var: float = 0.04,
                       x_min: float = -10.0,
                       x_max: float = 10.0,
                       k: float = -0.2,
                       seed: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    生成阶跃信号数据

    输入在[x_min, x_max]上均匀分布后打乱顺序，
    目标值 t = signal(x) + ε, ε ~ N(0, noise_var)。

    使用局部随机数生成器，不修改全局随机状态。

    Args:
        n_samples: 样本数量N
        noise_var: 噪声方差σ²
        x_min, x_max: 输入范围
        k: 斜线段的斜率
        seed: 随机种子

    Returns:
        X, t: 输入和目标值
    """
    if n_samples <= 0:
        raise InvalidParameterError(f"样本数必须为正，得到{n_samples}")
    if noise_var < 0:
        raise InvalidParameterError(f"噪声方差不能为负，得到{noise_var}")

    rng = np.random.default_rng(seed)

    X = rng.permutation(np.linspace(x_min, x_max, n_samples))
    t = step_signal(X, k) + rng.normal(0, np.sqrt(noise_var), n_samples)

    return X, t
