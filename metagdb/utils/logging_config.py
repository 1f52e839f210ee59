"""统一日志配置模块

实现功能：
- 同时输出日志到文件和控制台
- 支持日志文件自动滚动（防止过大）
- 从配置文件读取日志路径和级别
- 提供专用日志函数（如导入结果）
"""
import logging
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional

from metagdb.utils.yaml_config import get_yaml_config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(lineno)d - %(message)s"


def setup_logger(name: Optional[str] = None, config_file: Optional[str] = None) -> logging.Logger:
    """
    配置并返回指定名称的日志器，确保根日志器只有一组处理器

    Args:
        name: 日志器名称，同时用作日志文件名
        config_file: 配置文件路径（可选）

    Returns:
        配置好的日志器实例
    """
    config = get_yaml_config(config_file)
    log_config = config.get_log_config()

    # 确保日志目录存在
    log_dir = Path(log_config["log_dir"])
    log_dir.mkdir(parents=True, exist_ok=True)

    logger_name = name or "metagdb"
    level = str(log_config["log_level"]).upper()
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)

    # 配置根日志器，确保 metagdb.* 子模块的日志都能被捕获
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    # 文件处理器（支持日志滚动）
    file_handler = RotatingFileHandler(
        log_dir / f"{logger_name}.log",
        maxBytes=int(log_config["max_bytes"]),
        backupCount=int(log_config["backup_count"]),
        encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    return logger


def log_import_result(label: str, success: bool, message: str, logger: logging.Logger) -> None:
    """记录导入结果日志"""
    if success:
        logger.info(f"导入成功 - {label}, 信息: {message}")
    else:
        logger.error(f"导入失败 - {label}, 原因: {message}")
