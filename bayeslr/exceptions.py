"""
数值错误 (Numerical Errors)
===========================

本包只有一类错误：数值线性代数层面的失败。

- 奇异/非正定矩阵：先验协方差为0、基函数线性相关等
- 非法参数：带宽或方差不为正
- 退化的证据近似：有效参数数γ ≥ N
- 不收敛：迭代次数用尽（警告，不是错误）

所有错误立即抛给调用者，不做静默截断或伪逆替代。
调用者自己决定如何调整输入（例如增大先验方差）后重新调用。
"""

import numpy as np


class NumericalError(ValueError):
    """数值错误的基类"""


class SingularMatrixError(NumericalError, np.linalg.LinAlgError):
    """
    奇异或非正定矩阵

    同时是numpy.linalg.LinAlgError，
    所以已有的 `except LinAlgError` 代码也能捕获它。
    """


class InvalidParameterError(NumericalError):
    """非法参数：非正的带宽/方差、形状不匹配、非有限值"""


class DegenerateEvidenceError(NumericalError):
    """
    证据近似退化

    σ²的更新是 ||t - Φm_N||² / (N - γ)，
    当γ ≥ N时分母非正，问题是病态的。
    """


class ConvergenceWarning(UserWarning):
    """迭代在最大次数内没有满足收敛容差"""
