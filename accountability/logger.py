"""
Stay on One 日志配置模块。

配置日志策略：
- logs/system.log: 常规操作日志 (INFO+)
- logs/error.log: 异常堆栈 (ERROR/CRITICAL)
- console: 仅用户有用的提示 (WARNING+)

协作方 (coach / 存储) 的失败只记录日志，从不向上抛出。
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from accountability.paths import PROJECT_ROOT

# 日志目录
LOGS_DIR = PROJECT_ROOT / "logs"

ROOT_LOGGER_NAME = "stay_on_one"

MAX_BYTES = 5 * 1024 * 1024  # 5MB
BACKUP_COUNT = 3


def setup_logging(
    log_level: int = logging.INFO,
    console_level: int = logging.WARNING,
    logs_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    初始化日志系统。

    Args:
        log_level: 文件日志级别 (默认 INFO)
        console_level: 控制台日志级别 (默认 WARNING)
        logs_dir: 日志目录，默认为 <project_root>/logs

    Returns:
        配置好的 root logger
    """
    target_dir = logs_dir or LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)  # 由 handler 过滤

    # 清除现有 handlers (避免重复添加)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    file_format = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    console_format = logging.Formatter("[%(levelname)s] %(message)s")

    system_handler = RotatingFileHandler(
        target_dir / "system.log",
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8"
    )
    system_handler.setLevel(log_level)
    system_handler.setFormatter(file_format)
    logger.addHandler(system_handler)

    error_handler = RotatingFileHandler(
        target_dir / "error.log",
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8"
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(file_format)
    logger.addHandler(error_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(console_format)
    logger.addHandler(console_handler)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    获取模块专用的 logger。

    Args:
        name: 模块名称，如 "store", "coach"

    Returns:
        logger 实例 (stay_on_one.<name>)
    """
    if name:
        return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
    return logging.getLogger(ROOT_LOGGER_NAME)
