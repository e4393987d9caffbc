"""
线性代数辅助函数

所有协方差/精度矩阵的求逆都走这里：
先对称化，再做Cholesky分解。
Cholesky失败或条件数过大时抛出SingularMatrixError，
绝不退回到伪逆。
"""

import numpy as np
from typing import Union
from scipy.linalg import cholesky, cho_solve, LinAlgError

from .exceptions import SingularMatrixError, InvalidParameterError


# 条件数超过1/ε时认为矩阵在数值上奇异
MAX_CONDITION = 1.0 / np.finfo(float).eps


def check_positive(value: float, name: str) -> float:
    """检查标量参数严格为正且有限"""
    if not np.isfinite(value) or value <= 0:
        raise InvalidParameterError(f"{name}必须为正的有限数，得到{value}")
    return float(value)


def as_covariance(cov: Union[float, np.ndarray], dim: int, name: str) -> np.ndarray:
    """
    把标量或矩阵统一成 (dim, dim) 的协方差矩阵

    标量s表示 s·I。s=0 是奇异矩阵，与全零矩阵同样处理。
    """
    if np.isscalar(cov):
        if cov == 0:
            raise SingularMatrixError(f"{name}为0·I，奇异")
        return check_positive(cov, name) * np.eye(dim)

    cov = np.asarray(cov, dtype=float)
    if cov.shape != (dim, dim):
        raise InvalidParameterError(f"{name}的形状应为({dim}, {dim})，得到{cov.shape}")
    return cov


def symmetrize(A: np.ndarray) -> np.ndarray:
    """消除舍入误差带来的不对称：(A + Aᵀ)/2"""
    return 0.5 * (A + A.T)


def spd_cholesky(A: np.ndarray, name: str = "矩阵") -> np.ndarray:
    """
    对称正定矩阵的Cholesky分解 A = L Lᵀ

    Returns:
        下三角矩阵L
    """
    A = symmetrize(np.asarray(A, dtype=float))
    if not np.all(np.isfinite(A)):
        raise SingularMatrixError(f"{name}包含非有限值")
    try:
        L = cholesky(A, lower=True)
    except LinAlgError as e:
        raise SingularMatrixError(f"{name}奇异或非正定: {e}") from e

    # 对角元的比值平方约等于条件数
    diag = np.diag(L)
    if (diag.max() / diag.min()) ** 2 >= MAX_CONDITION:
        raise SingularMatrixError(f"{name}病态（条件数过大），无法稳定求逆")
    return L


def spd_inverse(A: np.ndarray, name: str = "矩阵") -> np.ndarray:
    """
    对称正定矩阵求逆

    通过Cholesky分解：A⁻¹ = L⁻ᵀ L⁻¹。
    结果再次对称化，保证返回的协方差严格对称。
    """
    L = spd_cholesky(A, name)
    A_inv = cho_solve((L, True), np.eye(A.shape[0]))
    return symmetrize(A_inv)
