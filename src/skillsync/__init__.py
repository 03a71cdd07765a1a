"""
skill-sync - 技能注册表同步工具

扫描技能文档，提取 auto-invoke 触发短语，
就地更新各个 AGENTS.md 中的「触发短语 -> 技能」表格。
"""


def _resolve_version() -> str:
    """已安装包的版本号，源码直接运行时为 0.0.0-dev"""
    try:
        from importlib.metadata import PackageNotFoundError, version

        return version("skill-sync")
    except PackageNotFoundError:
        return "0.0.0-dev"


__version__ = _resolve_version()
__author__ = "skill-sync"
