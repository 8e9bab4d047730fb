"""
日志配置模块
所有模块直接使用 loguru 的 logger，这里只负责安装输出目标
"""
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {thread.name} | {message}"

_file_sink_id: Optional[int] = None


def get_log_file_path() -> str:
    """日志文件路径: ~/.hdrstack/logs/hdrstack.log"""
    log_dir = Path.home() / ".hdrstack" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return str(log_dir / "hdrstack.log")


def setup_logging(verbose: bool = False, log_file: bool = False) -> Optional[str]:
    """
    替换 loguru 的默认处理器

    Args:
        verbose: 控制台也输出 DEBUG 日志
        log_file: 额外写入轮转日志文件（DEBUG 级别，保留7天）

    Returns:
        日志文件路径（未启用文件日志时为 None）
    """
    global _file_sink_id
    logger.remove()
    _file_sink_id = None

    # 无控制台时（例如打包后的无窗口程序）stderr 为 None
    if sys.stderr is not None:
        logger.add(
            sys.stderr,
            format=CONSOLE_FORMAT,
            level="DEBUG" if verbose else "INFO",
            colorize=True,
        )

    if not log_file:
        return None

    path = get_log_file_path()
    _file_sink_id = logger.add(
        path,
        format=FILE_FORMAT,
        level="DEBUG",
        rotation="1 day",
        retention="7 days",
        compression="zip",
        encoding="utf-8",
        enqueue=True,  # 渲染线程也会写日志
    )
    return path
