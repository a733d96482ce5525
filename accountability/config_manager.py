"""
Configuration Manager for Stay on One.

集中管理引擎常量。所有经验值必须显式声明并可配置。

使用方式:
    from accountability.config_manager import config
    default = config.DEFAULT_SCORE
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from accountability.paths import CONFIG_DIR

RUNTIME_CONFIG_PATH = CONFIG_DIR / "runtime.yaml"


@dataclass
class SystemConfig:
    """
    引擎运行时常量配置。
    """

    # === 评分 ===

    # 新目标的初始分数
    DEFAULT_SCORE: int = 50

    # 分数上下界 (clamp)
    SCORE_MIN: int = 0
    SCORE_MAX: int = 100

    # Coach 被要求遵守的 delta 区间 (仅写入 prompt，引擎不裁剪原始 delta)
    DELTA_LIMIT: int = 20

    # 心情评分区间
    MOOD_MIN: int = 1
    MOOD_MAX: int = 5

    # === Coach 上下文 ===

    # 打卡 prompt 中附带的最近日志条数
    RECENT_LOG_CONTEXT: int = 5

    # 通用 coach prompt 中附带的 vision 字符数
    VISION_CONTEXT_CHARS: int = 500

    COACH_MAX_TOKENS: int = 1000

    # Coach 调用失败时替代的文本
    FALLBACK_REPLY: str = "Connection error. Please try again."

    # === 分析 ===

    # 分数曲线回放窗口 (近似值，仅用于展示)
    JOURNEY_WINDOW: int = 14

    # 仪表盘迷你柱状图窗口
    SPARKLINE_WINDOW: int = 7

    # 生命之轮几何参数
    WHEEL_MAX_RADIUS: float = 110.0
    WHEEL_CENTER: float = 140.0

    # === 存储 ===

    # 账户文档的固定 key
    ACCOUNT_KEY: str = "soo3"


def _load_runtime_config(path: Optional[Path] = None) -> dict:
    """加载运行时配置覆盖（如果存在）。"""
    target = path or RUNTIME_CONFIG_PATH
    if not target.exists():
        return {}

    try:
        with open(target, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError):
        return {}


def get_config(path: Optional[Path] = None) -> SystemConfig:
    """
    获取系统配置实例。

    优先级：runtime.yaml > 默认值
    """
    base = SystemConfig()
    overrides = _load_runtime_config(path)

    for key, value in overrides.items():
        if hasattr(base, key):
            setattr(base, key, value)

    return base


# 全局配置实例
config = get_config()
