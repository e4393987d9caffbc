"""
1. 基函数展开 (Basis Expansion)
===============================

固定基函数展开可以看作神经网络的一个隐藏层：
区别只在于这一层是固定的，梯度不会传到它。

这里使用径向基函数（RBF，论文中也叫高斯核）：
φⱼ(x) = exp(-(x - cⱼ)² / (2σϕ²))

中心cⱼ取在训练点上，所以N个训练点给出N个基函数，
把输入从R¹扩展到R^N。可选地在最前面加一列1作为截距项：
Φ = [1, φ₁(x), ..., φ_N(x)]

σϕ²控制每个基函数的宽度：
- σϕ²小：基函数很窄，拟合局部细节（容易过拟合）
- σϕ²大：基函数很宽，相邻基函数高度相关（设计矩阵病态）
"""

import numpy as np
from typing import Dict

from .exceptions import InvalidParameterError
from .linalg_utils import check_positive


def rbf_basis(x: np.ndarray, centers: np.ndarray, sigma2: float) -> np.ndarray:
    """
    径向基函数

    Args:
        x: 查询输入，shape (n_samples,)
        centers: 基函数中心，shape (n_basis,)
        sigma2: 带宽σϕ²

    Returns:
        shape (n_samples, n_basis)，第(i, j)项为exp(-(xᵢ - cⱼ)²/(2σϕ²))
    """
    sigma2 = check_positive(sigma2, "带宽σϕ²")
    x = np.asarray(x, dtype=float).ravel()
    centers = np.asarray(centers, dtype=float).ravel()

    # 广播：(n, 1) - (1, d) -> (n, d)
    return np.exp(-(x[:, None] - centers[None, :]) ** 2 / (2 * sigma2))


def basis_expansion(x: np.ndarray, centers: np.ndarray,
                    sigma2: float = 1.0, intercept: bool = False) -> np.ndarray:
    """
    用RBF展开设计矩阵

    Args:
        x: 查询输入（任意长度）
        centers: 中心（通常是训练输入），长度d
        sigma2: 带宽σϕ² > 0
        intercept: 是否在第一列加1

    Returns:
        Φ: shape (N, d) 或 (N, d+1)
    """
    Phi = rbf_basis(x, centers, sigma2)
    if not np.all(np.isfinite(Phi)):
        raise InvalidParameterError("输入包含非有限值，无法构造设计矩阵")

    if intercept:
        Phi = np.hstack([np.ones((Phi.shape[0], 1)), Phi])
    return Phi


class RBFBasis:
    """
    RBF基函数

    把中心和带宽固定下来，之后像函数一样调用：
    basis = RBFBasis(X_train, sigma2=0.5, intercept=True)
    Phi = basis(X_train)
    Phi_test = basis(X_test)
    """

    def __init__(self, centers: np.ndarray, sigma2: float = 1.0,
                 intercept: bool = False):
        """
        Args:
            centers: 基函数中心
            sigma2: 带宽σϕ²
            intercept: 是否加截距列
        """
        self.centers = np.asarray(centers, dtype=float).ravel()
        self.sigma2 = check_positive(sigma2, "带宽σϕ²")
        self.intercept = intercept
        self.n_basis = len(self.centers)

    @property
    def n_features(self) -> int:
        """设计矩阵的列数（包括截距）"""
        return self.n_basis + int(self.intercept)

    def __call__(self, x: np.ndarray) -> np.ndarray:
        return basis_expansion(x, self.centers, self.sigma2, self.intercept)


def demonstrate_basis_expansion(X: np.ndarray,
                                sigma2: float = 0.5,
                                intercept: bool = True) -> Dict:
    """
    演示基函数展开

    展示设计矩阵的形状和条件数随带宽的变化。
    条件数大意味着基函数接近线性相关，
    最大似然估计会非常不稳定。

    Args:
        X: 训练输入
        sigma2: 带宽
        intercept: 是否加截距

    Returns:
        包含设计矩阵的字典
    """
    print("\n基函数展开")
    print("=" * 60)

    basis = RBFBasis(X, sigma2, intercept)
    Phi = basis(X)
    print(f"输入维度: 1 -> 特征维度: {basis.n_features}")
    print(f"设计矩阵形状: {Phi.shape}")

    # 单个中心的例子：φ(c) = 1, φ(c ± 1) = exp(-1/(2σϕ²))
    print(f"φ(c)={rbf_basis([0.0], [0.0], sigma2)[0, 0]:.4f}, "
          f"φ(c+1)={rbf_basis([1.0], [0.0], sigma2)[0, 0]:.4f}")

    print("\n不同带宽下ΦᵀΦ的条件数：")
    print("-" * 40)
    for s2 in [0.1, sigma2, 2.0, 5.0]:
        G = basis_expansion(X, X, s2, intercept)
        print(f"  σϕ²={s2:4.1f}: cond(ΦᵀΦ)={np.linalg.cond(G.T @ G):.2e}")

    print("\n观察：")
    print("1. 带宽越大，相邻基函数越相似")
    print("2. ΦᵀΦ越病态，最大似然越不稳定")
    print("3. 先验（正则化）可以修复病态问题")

    return {'basis': basis, 'Phi': Phi}
