"""
Bayesian Linear Regression
主入口文件

使用Hydra进行配置管理，可以灵活运行不同分节的代码。

使用方法:
    python main.py
    python main.py section=evidence
    python main.py prior.lambda2=10 basis.sigma2=1.0
"""

import logging

import hydra
from omegaconf import DictConfig, OmegaConf
import numpy as np

from bayeslr import run_sections

# 设置numpy的打印格式
np.set_printoptions(precision=4, suppress=True)

log = logging.getLogger(__name__)


@hydra.main(version_base=None, config_path="configs", config_name="config")
def main(cfg: DictConfig) -> None:
    """
    主函数：根据配置运行相应分节的代码

    1. 接收Hydra配置
    2. 运行选中的分节（cfg.section）

    随机种子通过cfg.general.seed显式传给每个需要随机数的函数，
    不修改全局随机状态。

    Args:
        cfg: Hydra配置对象，包含所有运行参数
    """
    log.debug("配置:\n%s", OmegaConf.to_yaml(cfg))

    print("=" * 80)
    print("Bayesian Linear Regression")
    print("教学代码实现")
    print("=" * 80)
    print(f"\n正在运行: {cfg.section}")
    print("-" * 80)

    run_sections(cfg)


if __name__ == "__main__":
    main()
