"""
同步报告

每次运行产生一份 SyncReport，是整个流水线对外可见的结果：
CLI 据此打印差异，CI 据此决定退出码。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DocumentStatus(Enum):
    """目标文档状态 (本次运行内均为终态)"""

    UNCHANGED = "unchanged"  # 已检查，无差异
    UPDATED = "updated"  # 有差异 (检查模式下表示待写入)
    FAILED = "failed"  # 锚点或读写失败，文档未被修改


class ExitCode(int, Enum):
    """CLI 退出码"""

    IN_SYNC = 0
    ERRORS = 1  # 存在冲突或文档失败
    PENDING = 2  # 检查模式下有待写入的变化


@dataclass
class DocumentResult:
    """单个目标文档的结果"""

    path: str
    status: DocumentStatus
    regions: list[str] = field(default_factory=list)
    error: dict[str, Any] | None = None
    diff: str = ""

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "status": self.status.value,
            "regions": self.regions,
            "error": self.error,
            "diff": self.diff,
        }


@dataclass(frozen=True)
class ConflictRecord:
    """冲突：触发短语、竞争的技能、受影响的文档 (无文档可见时为 None)"""

    trigger: str
    skill_ids: tuple[str, ...]
    document: str | None = None

    def to_dict(self) -> dict:
        return {
            "trigger": self.trigger,
            "skill_ids": list(self.skill_ids),
            "document": self.document,
        }


@dataclass(frozen=True)
class OrphanRecord:
    """孤立条目：文档表格中引用的技能已不在注册表里"""

    document: str
    region: str
    trigger: str
    skill_id: str

    def to_dict(self) -> dict:
        return {
            "document": self.document,
            "region": self.region,
            "trigger": self.trigger,
            "skill_id": self.skill_id,
        }


@dataclass
class SyncReport:
    """同步报告"""

    documents: list[DocumentResult] = field(default_factory=list)
    conflicts: list[ConflictRecord] = field(default_factory=list)
    orphans: list[OrphanRecord] = field(default_factory=list)
    skill_errors: list[dict[str, Any]] = field(default_factory=list)
    committed: bool = False

    @property
    def updated(self) -> list[DocumentResult]:
        return [d for d in self.documents if d.status is DocumentStatus.UPDATED]

    @property
    def unchanged(self) -> list[DocumentResult]:
        return [d for d in self.documents if d.status is DocumentStatus.UNCHANGED]

    @property
    def failed(self) -> list[DocumentResult]:
        return [d for d in self.documents if d.status is DocumentStatus.FAILED]

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    @property
    def pending_changes(self) -> bool:
        """有变化尚未写入"""
        return bool(self.updated) and not self.committed

    def document(self, path: str) -> DocumentResult | None:
        for doc in self.documents:
            if doc.path == path:
                return doc
        return None

    def exit_code(self, check: bool = True, strict: bool = False) -> ExitCode:
        """
        0 = 已同步，1 = 有冲突或失败，2 = 检查模式下有待写入的变化

        strict 时技能文档解析失败也算错误
        """
        if self.has_conflicts or self.has_failures or (strict and self.skill_errors):
            return ExitCode.ERRORS
        if check and self.pending_changes:
            return ExitCode.PENDING
        return ExitCode.IN_SYNC

    def summary(self) -> dict[str, int]:
        return {
            "documents": len(self.documents),
            "updated": len(self.updated),
            "unchanged": len(self.unchanged),
            "failed": len(self.failed),
            "conflicts": len(self.conflicts),
            "orphans": len(self.orphans),
            "skill_errors": len(self.skill_errors),
        }

    def to_dict(self) -> dict:
        return {
            "committed": self.committed,
            "summary": self.summary(),
            "documents": [d.to_dict() for d in self.documents],
            "conflicts": [c.to_dict() for c in self.conflicts],
            "orphans": [o.to_dict() for o in self.orphans],
            "skill_errors": self.skill_errors,
        }
