"""
结构化同步错误

提供 SyncError 异常基类和 ErrorType 枚举，
让编排器和 CLI 能根据错误类型决定：跳过技能 / 标记文档失败 / 报告冲突。

Usage:
    from skillsync.errors import AnchorNotFoundError

    try:
        region = locate_region(text, spec)
    except AnchorNotFoundError as e:
        result.error = e.to_dict()
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class ErrorType(Enum):
    """同步错误类型"""

    MALFORMED_SKILL = "malformed_skill"  # 技能文档无法解析，跳过该技能
    TRIGGER_CONFLICT = "trigger_conflict"  # 同一触发短语被多个技能声明
    ANCHOR_NOT_FOUND = "anchor_not_found"  # 目标文档中找不到区域锚点
    AMBIGUOUS_ANCHOR = "ambiguous_anchor"  # 锚点出现多次，无法安全定位
    IO_FAILURE = "io_failure"  # 文件读写失败


_ERROR_TYPE_HINTS: dict[ErrorType, str] = {
    ErrorType.MALFORMED_SKILL: "检查 SKILL.md 的 YAML frontmatter（name / description / auto_invoke）",
    ErrorType.TRIGGER_CONFLICT: "让冲突的技能使用不同的触发短语，或缩小它们的 scope",
    ErrorType.ANCHOR_NOT_FOUND: "在文档中添加区域标题或 skill-sync 注释标记",
    ErrorType.AMBIGUOUS_ANCHOR: "删除重复的区域标题或注释标记",
    ErrorType.IO_FAILURE: "确认文件存在且可读写",
}


class SyncError(Exception):
    """
    结构化同步错误基类。

    所有错误都可以恢复：编排器捕获后记录到 SyncReport，
    不会中断整次同步。
    """

    error_type: ErrorType = ErrorType.IO_FAILURE

    def __init__(
        self,
        message: str,
        *,
        path: Path | str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.path = str(path) if path is not None else None
        self.details = details or {}
        super().__init__(f"{message} ({self.path})" if self.path else message)

    def to_dict(self) -> dict[str, Any]:
        """序列化为字典"""
        result: dict[str, Any] = {
            "error_type": self.error_type.value,
            "message": self.message,
            "hint": _ERROR_TYPE_HINTS.get(self.error_type, ""),
        }
        if self.path:
            result["path"] = self.path
        if self.details:
            result["details"] = self.details
        return result

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


class MalformedSkillError(SyncError):
    """技能文档缺少必需字段或无法解析"""

    error_type = ErrorType.MALFORMED_SKILL


class TriggerConflictError(SyncError):
    """同一作用域内一个触发短语对应多个技能"""

    error_type = ErrorType.TRIGGER_CONFLICT

    def __init__(self, trigger: str, skill_ids: tuple[str, ...], **kwargs: Any) -> None:
        self.trigger = trigger
        self.skill_ids = tuple(skill_ids)
        details = {"trigger": trigger, "skill_ids": list(self.skill_ids)}
        details.update(kwargs.pop("details", None) or {})
        super().__init__(
            f"Trigger '{trigger}' is claimed by {', '.join(self.skill_ids)}",
            details=details,
            **kwargs,
        )


class AnchorNotFoundError(SyncError):
    """目标文档中没有区域的起始（或结束）标记"""

    error_type = ErrorType.ANCHOR_NOT_FOUND


class AmbiguousAnchorError(SyncError):
    """区域标记出现不止一次"""

    error_type = ErrorType.AMBIGUOUS_ANCHOR


class IOFailure(SyncError):
    """文档不可读或不可写"""

    error_type = ErrorType.IO_FAILURE


def classify_error(error: Exception, path: Path | str | None = None) -> SyncError:
    """
    将通用异常分类为结构化 SyncError。

    - SyncError -> 原样返回
    - OSError / UnicodeDecodeError -> IOFailure
    - 其他 -> IOFailure（附带异常类型）
    """
    if isinstance(error, SyncError):
        return error

    if isinstance(error, (OSError, UnicodeDecodeError)):
        return IOFailure(str(error) or type(error).__name__, path=path)

    logger.debug(f"Unclassified error for {path}: {type(error).__name__}: {error}")
    return IOFailure(
        f"{type(error).__name__}: {error}",
        path=path,
        details={"exception": type(error).__name__},
    )
