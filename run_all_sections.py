#!/usr/bin/env python3
"""
贝叶斯线性回归 完整演示
=======================

不经过Hydra，直接用默认配置运行所有分节。

使用方法：
python run_all_sections.py                       # 运行所有分节
python run_all_sections.py --section evidence    # 运行特定分节
python run_all_sections.py --list                # 列出所有分节

依赖：
- numpy, scipy
- hydra-core, omegaconf
"""

import argparse

from omegaconf import DictConfig

from bayeslr import run_sections, default_config, SECTIONS


# 分节信息
SECTION_INFO = {
    'basis': {
        'title': '基函数展开 (Basis Expansion)',
        'topics': ['径向基函数', '截距项', '设计矩阵的条件数']
    },
    'regression': {
        'title': '最大似然与MAP (Maximum Likelihood and MAP)',
        'topics': ['正规方程', '岭回归', '梯度上升']
    },
    'posterior': {
        'title': '共轭后验 (Conjugate Posterior)',
        'topics': ['配方', '后验均值与MAP', '顺序学习']
    },
    'predictive': {
        'title': '贝叶斯预测 (Bayesian Prediction)',
        'topics': ['均值信号预测', '观测预测', '蒙特卡洛']
    },
    'evidence': {
        'title': '证据近似 (The Evidence Procedure)',
        'topics': ['边际似然', '有效参数数', '不动点迭代', 'EM算法']
    }
}


def print_header():
    """打印项目头部信息"""
    print("\n" + "=" * 80)
    print(" " * 20 + "Bayesian Linear Regression")
    print(" " * 20 + "固定基函数展开与证据近似")
    print("=" * 80 + "\n")


def list_sections():
    """列出所有可用分节"""
    print("\n可用分节：")
    print("-" * 60)
    for name in SECTIONS:
        info = SECTION_INFO[name]
        print(f"\n{name}：{info['title']}")
        print("  主要内容：")
        for topic in info['topics']:
            print(f"    • {topic}")
    print("\n" + "-" * 60)
    print(f"共{len(SECTIONS)}个分节")


def build_config(args: argparse.Namespace) -> DictConfig:
    """根据命令行参数调整默认配置"""
    cfg = default_config()

    if args.section:
        cfg.section = args.section

    if args.seed is not None:
        cfg.general.seed = args.seed

    if args.quick:
        # 快速模式：减少采样和迭代
        cfg.predictive.n_samples = 20
        cfg.evidence.max_iter = 100

    return cfg


def main():
    """主函数"""
    parser = argparse.ArgumentParser(
        description='贝叶斯线性回归演示',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        '--section', '-s',
        choices=SECTIONS,
        help='运行指定分节'
    )

    parser.add_argument(
        '--list', '-l',
        action='store_true',
        help='列出所有可用分节'
    )

    parser.add_argument(
        '--seed',
        type=int,
        help='随机种子'
    )

    parser.add_argument(
        '--quick',
        action='store_true',
        help='快速模式（减少采样和迭代次数）'
    )

    args = parser.parse_args()

    print_header()
    if args.list:
        list_sections()
        return

    run_sections(build_config(args))


if __name__ == '__main__':
    main()
