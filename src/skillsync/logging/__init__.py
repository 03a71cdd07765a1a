"""
skill-sync 日志系统

功能:
- 控制台彩色输出（输出到 stderr，不干扰 --json 报告）
- 可选日志文件（按大小轮转）
- 分离 error.log（只记录 ERROR/CRITICAL，按天轮转）
"""

from .config import get_logger, setup_logging
from .handlers import ColoredConsoleHandler, ErrorOnlyHandler

__all__ = [
    "setup_logging",
    "get_logger",
    "ColoredConsoleHandler",
    "ErrorOnlyHandler",
]
