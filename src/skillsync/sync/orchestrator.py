"""
同步编排器

流水线: 发现技能文档 -> 解析 -> 构建注册表 -> 逐个目标文档渲染并打补丁 -> 汇总报告

两阶段执行:
1. plan(): 在内存中算出所有文档的新内容和完整报告，不写任何文件
2. commit(): 把有变化的文档逐个原子写回

注册表在任何文档被规划之前完全构建好 (包括冲突检测)，之后只读共享。
一个文档失败不影响其他文档；失败的文档保持原样。
"""

import concurrent.futures
import difflib
import logging
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import IOFailure, SyncError, classify_error
from ..skills.loader import SkillLoader
from ..skills.parser import SkillParser
from ..skills.registry import ConflictPolicy, Registry, RegistryBuilder
from .patcher import find_table, locate_region, splice
from .render import parse_table_rows, render_table
from .report import (
    ConflictRecord,
    DocumentResult,
    DocumentStatus,
    OrphanRecord,
    SyncReport,
)
from .targets import TargetDocument, default_targets, discover_scopes, filter_targets

logger = logging.getLogger(__name__)


@dataclass
class DocumentPlan:
    """单个文档的规划结果"""

    target: TargetDocument
    result: DocumentResult
    original: str | None = None
    patched: str | None = None
    conflicts: list[ConflictRecord] = field(default_factory=list)
    orphans: list[OrphanRecord] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return (
            self.result.status is DocumentStatus.UPDATED
            and self.patched is not None
            and self.patched != self.original
        )


@dataclass
class SyncPlan:
    """plan() 的产物：注册表快照 + 每个文档的新内容 + 报告"""

    registry: Registry
    documents: list[DocumentPlan]
    report: SyncReport


def read_document(path: Path) -> str:
    """按字节读取再解码，保留原有换行符"""
    return path.read_bytes().decode("utf-8")


def write_document(path: Path, content: str) -> None:
    """原子写入：先写同目录临时文件，再替换"""
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_bytes(content.encode("utf-8"))
        tmp.replace(path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


class SyncOrchestrator:
    """
    同步编排器

    Args:
        policy: 冲突渲染策略
        max_workers: 解析技能和规划文档的线程数 (1=串行)
        default_scope: 未声明 scope 的技能使用的 scope
    """

    def __init__(
        self,
        policy: ConflictPolicy | str = ConflictPolicy.OMIT,
        max_workers: int = 1,
        default_scope: str = "root",
    ):
        self.policy = ConflictPolicy.parse(policy)
        self.max_workers = max(1, max_workers)
        self.loader = SkillLoader(SkillParser(default_scope=default_scope), max_workers=self.max_workers)
        self.builder = RegistryBuilder(self.policy)

    def build_registry(self, skills_dir: Path) -> tuple[Registry, list[SyncError]]:
        """加载所有技能并构建注册表，返回 (注册表, 技能错误)"""
        loaded = self.loader.load_directory(skills_dir)
        registry = self.builder.build(loaded.skills)
        return registry, list(loaded.errors) + list(registry.duplicates)

    def plan(
        self,
        skills_dir: Path,
        targets: list[TargetDocument] | None = None,
        root: Path | None = None,
        scopes: list[str] | None = None,
    ) -> SyncPlan:
        """
        计算同步计划 (不写文件)

        Args:
            skills_dir: 技能目录
            targets: 目标文档；为 None 时按注册表中的 scope 以及已有锚点的 AGENTS.md 推导
            root: 项目根目录，用于推导目标和显示相对路径
            scopes: 只同步覆盖这些 scope 的文档
        """
        root = root or skills_dir.parent
        registry, skill_errors = self.build_registry(skills_dir)

        if targets is None:
            targets = default_targets(registry.scopes | discover_scopes(root), root)
        if scopes:
            targets = filter_targets(targets, scopes)

        plans = self._plan_all(targets, registry, root)

        report = SyncReport(skill_errors=[e.to_dict() for e in skill_errors])
        for plan in plans:
            report.documents.append(plan.result)
            report.conflicts.extend(plan.conflicts)
            report.orphans.extend(plan.orphans)
        report.conflicts.extend(self._unseen_conflicts(registry, report.conflicts))

        logger.info(
            f"Planned sync: {len(report.updated)} to update, {len(report.unchanged)} unchanged, "
            f"{len(report.failed)} failed, {len(report.conflicts)} conflicts"
        )
        return SyncPlan(registry=registry, documents=plans, report=report)

    def _plan_all(
        self,
        targets: list[TargetDocument],
        registry: Registry,
        root: Path,
    ) -> list[DocumentPlan]:
        present = []
        for target in targets:
            if not target.required and not target.path.exists():
                logger.debug(f"Skipping missing optional target: {target.path}")
                continue
            present.append(target)

        if self.max_workers > 1 and len(present) > 1:
            with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                return list(executor.map(lambda t: self.plan_document(t, registry, root), present))
        return [self.plan_document(t, registry, root) for t in present]

    def plan_document(self, target: TargetDocument, registry: Registry, root: Path) -> DocumentPlan:
        """规划单个文档：要么所有区域都成功，要么整个文档标记失败"""
        display = _display_path(target.path, root)
        plan = DocumentPlan(target=target, result=DocumentResult(display, DocumentStatus.UNCHANGED))

        # 冲突与锚点无关，先记录
        for spec in target.regions:
            view = registry.view(spec.scopes, self.policy)
            for conflict in view.conflicts:
                record = ConflictRecord(conflict.trigger, conflict.skill_ids, display)
                if record not in plan.conflicts:
                    plan.conflicts.append(record)

        try:
            original = read_document(target.path)
        except Exception as e:
            return self._fail(plan, classify_error(e, display))
        plan.original = original

        text = original
        try:
            for spec in target.regions:
                region = locate_region(text, spec)

                span = find_table(text, region)
                if span is not None:
                    for trigger, skill_id in parse_table_rows(text[span[0]:span[1]]):
                        if skill_id not in registry.skills:
                            plan.orphans.append(OrphanRecord(display, spec.name, trigger, skill_id))

                view = registry.view(spec.scopes, self.policy)
                patched = splice(text, region, render_table(view.rows))
                if patched != text:
                    plan.result.regions.append(spec.name)
                text = patched
        except SyncError as e:
            e.path = e.path or display
            plan.orphans.clear()
            return self._fail(plan, e)

        plan.patched = text
        if text != original:
            plan.result.status = DocumentStatus.UPDATED
            plan.result.diff = _unified_diff(original, text, display)
            logger.info(f"{display}: update pending ({', '.join(plan.result.regions)})")
        else:
            logger.info(f"{display}: in sync")
        return plan

    @staticmethod
    def _fail(plan: DocumentPlan, error: SyncError) -> DocumentPlan:
        logger.error(f"{plan.result.path}: {error.message}")
        plan.result.status = DocumentStatus.FAILED
        plan.result.error = error.to_dict()
        plan.result.regions.clear()
        plan.patched = None
        return plan

    @staticmethod
    def _unseen_conflicts(registry: Registry, seen: list[ConflictRecord]) -> list[ConflictRecord]:
        """没有任何目标文档能看到的注册表冲突也要报告"""
        unseen = []
        for conflict in registry.conflicts:
            covered = any(
                record.trigger == conflict.trigger
                and set(conflict.skill_ids) <= set(record.skill_ids)
                for record in seen
            )
            if not covered:
                unseen.append(ConflictRecord(conflict.trigger, conflict.skill_ids, None))
        return unseen

    def commit(self, plan: SyncPlan) -> SyncReport:
        """
        写回有变化的文档

        写入前确认文件自规划以来没有被改动；写入失败只影响该文档。
        """
        for doc in plan.documents:
            if not doc.changed:
                continue
            try:
                if read_document(doc.target.path) != doc.original:
                    raise IOFailure("Document modified since it was planned", path=doc.result.path)
                write_document(doc.target.path, doc.patched)
                logger.info(f"{doc.result.path}: updated")
            except Exception as e:
                error = classify_error(e, doc.result.path)
                logger.error(f"{doc.result.path}: write failed: {error.message}")
                doc.result.status = DocumentStatus.FAILED
                doc.result.error = error.to_dict()

        plan.report.committed = True
        return plan.report

    def sync(
        self,
        skills_dir: Path,
        targets: list[TargetDocument] | None = None,
        *,
        write: bool = False,
        root: Path | None = None,
        scopes: list[str] | None = None,
    ) -> SyncReport:
        """检查模式 (write=False) 从不写文件；写模式只提交成功规划的文档"""
        plan = self.plan(skills_dir, targets, root, scopes)
        if not write:
            return plan.report
        return self.commit(plan)


def _display_path(path: Path, root: Path) -> str:
    try:
        return path.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return str(path)


def _unified_diff(before: str, after: str, name: str) -> str:
    return "".join(
        difflib.unified_diff(
            before.splitlines(keepends=True),
            after.splitlines(keepends=True),
            fromfile=f"a/{name}",
            tofile=f"b/{name}",
        )
    )


def sync(
    skills_dir: Path,
    targets: list[TargetDocument] | None = None,
    *,
    write: bool = False,
    root: Path | None = None,
    scopes: list[str] | None = None,
    policy: ConflictPolicy | str = ConflictPolicy.OMIT,
    max_workers: int = 1,
) -> SyncReport:
    """便捷函数：一次完整同步"""
    orchestrator = SyncOrchestrator(policy=policy, max_workers=max_workers)
    return orchestrator.sync(skills_dir, targets, write=write, root=root, scopes=scopes)
