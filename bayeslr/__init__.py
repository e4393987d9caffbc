"""
Bayesian Linear Regression (贝叶斯线性回归)
==========================================

固定基函数展开的线性回归：从最大似然到完全贝叶斯。

主要内容：
1. 基函数展开 (basis)
   - 径向基函数，中心取在训练点上
   - 可选截距列

2. 最大似然与MAP (regression)
   - 正规方程
   - 岭回归 = 零均值高斯先验下的MAP
   - 梯度上升求MAP

3. 共轭后验 (posterior)
   - 闭式高斯后验
   - 顺序学习

4. 贝叶斯预测 (predictive)
   - 均值信号与观测的预测分布
   - 蒙特卡洛预测

5. 证据近似 (evidence)
   - 不动点迭代估计σ²、λ²
   - EM算法

核心思想：
所有函数都是纯函数：输入矩阵和标量，返回新的值，
没有隐藏的全局状态。想要新的结果就用新的超参数重新调用。
"""

from omegaconf import DictConfig
import numpy as np

from .exceptions import (
    NumericalError,
    SingularMatrixError,
    InvalidParameterError,
    DegenerateEvidenceError,
    ConvergenceWarning
)

from .datasets import step_signal, generate_step_data

from .basis import (
    rbf_basis,
    basis_expansion,
    RBFBasis,
    demonstrate_basis_expansion
)

from .conjugate_regression import (
    GaussianPosterior,
    bayesian_conjugate_lr,
    mle,
    map_estimate,
    ridge_loss,
    log_posterior,
    log_posterior_grad,
    map_gradient_ascent,
    sequential_posterior,
    demonstrate_regression,
    demonstrate_posterior
)

from .predictive import (
    PredictiveDistribution,
    MonteCarloPrediction,
    predictive_distribution,
    monte_carlo_predictive,
    demonstrate_prediction
)

from .evidence import (
    EvidenceResult,
    log_marginal_likelihood,
    gram_eigenvalues,
    evidence_update,
    evidence_procedure,
    em_procedure,
    demonstrate_evidence_approximation
)

from .config import SECTIONS, default_config, validate_config

__version__ = "0.1.0"


def run_sections(cfg: DictConfig) -> None:
    """
    运行配置中选中的演示分节

    cfg.section 为 'all' 时按顺序运行全部分节。

    Args:
        cfg: Hydra/OmegaConf配置对象
    """
    validate_config(cfg)
    selected = SECTIONS if cfg.section == 'all' else [cfg.section]

    print("\n" + "=" * 80)
    print("贝叶斯线性回归 (Bayesian Linear Regression)")
    print("=" * 80)

    # 生成示例数据
    print("\n生成示例数据...")
    X_train, t_train = generate_step_data(
        n_samples=cfg.data.n_samples,
        noise_var=cfg.data.noise_var,
        x_min=cfg.data.x_min,
        x_max=cfg.data.x_max,
        seed=cfg.general.seed
    )
    basis = RBFBasis(X_train, cfg.basis.sigma2, cfg.basis.intercept)
    Phi = basis(X_train)

    X_test = np.arange(cfg.data.x_min, cfg.data.x_max + cfg.predictive.grid_step / 2,
                       cfg.predictive.grid_step)
    Phi_test = basis(X_test)

    if 'basis' in selected:
        print("\n" + "-" * 60)
        print("1. 基函数展开 (Basis Expansion)")
        print("-" * 60)
        demonstrate_basis_expansion(X_train, cfg.basis.sigma2, cfg.basis.intercept)

    if 'regression' in selected:
        print("\n" + "-" * 60)
        print("2. 最大似然与MAP (Maximum Likelihood and MAP)")
        print("-" * 60)
        demonstrate_regression(Phi, t_train, sigma2=cfg.prior.sigma2)

    if 'posterior' in selected:
        print("\n" + "-" * 60)
        print("3. 共轭后验 (Conjugate Posterior)")
        print("-" * 60)
        demonstrate_posterior(Phi, t_train, cfg.prior.sigma2, cfg.prior.lambda2)

    if 'predictive' in selected:
        print("\n" + "-" * 60)
        print("4. 贝叶斯预测 (Bayesian Prediction)")
        print("-" * 60)
        posterior = bayesian_conjugate_lr(Phi, t_train, cfg.prior.sigma2,
                                          np.zeros(basis.n_features), cfg.prior.lambda2)
        demonstrate_prediction(posterior, Phi_test, step_signal(X_test),
                               cfg.prior.sigma2,
                               n_samples=cfg.predictive.n_samples,
                               level=cfg.predictive.level,
                               seed=cfg.general.seed)

    if 'evidence' in selected:
        print("\n" + "-" * 60)
        print("5. 证据近似 (The Evidence Procedure)")
        print("-" * 60)
        result = demonstrate_evidence_approximation(Phi, t_train,
                                                    tol=cfg.evidence.tol,
                                                    max_iter=cfg.evidence.max_iter)
        ep = result['evidence']
        pred = predictive_distribution(ep.posterior, Phi_test, ep.sigma2)
        rmse = np.sqrt(np.mean((pred.mean - step_signal(X_test)) ** 2))
        print(f"\n证据近似超参数下的预测RMSE: {rmse:.4f}")
        print(f"真实噪声方差: {cfg.data.noise_var}, 估计: {ep.sigma2:.4f}")

    print("\n" + "=" * 80)
    print("演示完成！")
    print("=" * 80)
    print("\n关键要点：")
    print("1. RBF展开让线性模型可以拟合非线性信号")
    print("2. MAP即岭回归，先验方差控制正则化强度")
    print("3. 贝叶斯预测同时给出均值和不确定性")
    print("4. 证据近似自动确定超参数")
