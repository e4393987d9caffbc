"""
配置 (Configuration)
====================

演示代码通过Hydra/OmegaConf配置。

- main.py 使用 @hydra.main 读取 configs/config.yaml
- run_all_sections.py 不经过Hydra，直接用 default_config()

两者的配置树必须保持一致（测试会检查）。
"""

from omegaconf import DictConfig, OmegaConf

from .exceptions import InvalidParameterError


# 所有分节，按演示顺序
SECTIONS = ['basis', 'regression', 'posterior', 'predictive', 'evidence']


def default_config() -> DictConfig:
    """创建默认配置，与configs/config.yaml相同"""
    cfg = OmegaConf.create({
        'section': 'all',
        'general': {
            'seed': 42
        },
        'data': {
            'n_samples': 50,
            'noise_var': 0.04,
            'x_min': -10.0,
            'x_max': 10.0
        },
        'basis': {
            'sigma2': 0.5,
            'intercept': True
        },
        'prior': {
            'sigma2': 1.0,
            'lambda2': 1.0
        },
        'evidence': {
            'tol': 1e-4,
            'max_iter': 1000
        },
        'predictive': {
            'n_samples': 100,
            'level': 0.9,
            'grid_step': 0.1
        }
    })
    return cfg


def validate_config(cfg: DictConfig) -> DictConfig:
    """
    检查配置中的数值参数

    方差、带宽、容差、迭代次数都必须为正；
    置信水平必须在(0, 1)之间。

    Args:
        cfg: 配置对象

    Returns:
        同一个cfg，便于链式调用
    """
    positive = {
        'data.n_samples': cfg.data.n_samples,
        'basis.sigma2': cfg.basis.sigma2,
        'prior.sigma2': cfg.prior.sigma2,
        'prior.lambda2': cfg.prior.lambda2,
        'evidence.tol': cfg.evidence.tol,
        'evidence.max_iter': cfg.evidence.max_iter,
        'predictive.n_samples': cfg.predictive.n_samples,
        'predictive.grid_step': cfg.predictive.grid_step,
    }
    for key, value in positive.items():
        if not value > 0:
            raise InvalidParameterError(f"配置项{key}必须为正，得到{value}")

    if cfg.data.noise_var < 0:
        raise InvalidParameterError(f"噪声方差不能为负，得到{cfg.data.noise_var}")
    if cfg.data.x_min >= cfg.data.x_max:
        raise InvalidParameterError("x_min必须小于x_max")
    if not 0 < cfg.predictive.level < 1:
        raise InvalidParameterError(f"置信水平必须在(0,1)之间，得到{cfg.predictive.level}")
    if cfg.section != 'all' and cfg.section not in SECTIONS:
        raise InvalidParameterError(f"未知分节: {cfg.section}")

    return cfg
