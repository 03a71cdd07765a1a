"""
技能注册中心

把解析后的技能聚合成「触发短语 -> 技能 id」的规范映射，并检测冲突。
Registry 是每次运行构建一次的不可变值，渲染和打补丁只读它。
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from ..errors import MalformedSkillError, TriggerConflictError
from .parser import SkillMetadata

logger = logging.getLogger(__name__)


class ConflictPolicy(Enum):
    """触发短语冲突时的渲染策略（冲突总是会被报告）"""

    OMIT = "omit"  # 冲突行不渲染
    FIRST_WINS = "first-wins"  # 渲染技能 id 字典序最小的那一个

    @classmethod
    def parse(cls, value: "str | ConflictPolicy") -> "ConflictPolicy":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


@dataclass(frozen=True)
class TriggerClaim:
    """一个技能对某个触发短语的声明"""

    skill_id: str
    scope: frozenset[str]


@dataclass(frozen=True)
class TriggerConflict:
    """
    触发短语冲突

    skill_ids 为排序后的竞争技能，scopes 为它们重叠的 scope 标签
    """

    trigger: str
    skill_ids: tuple[str, ...]
    scopes: frozenset[str] = frozenset()

    def to_dict(self) -> dict:
        return {
            "trigger": self.trigger,
            "skill_ids": list(self.skill_ids),
            "scopes": sorted(self.scopes),
        }


@dataclass(frozen=True)
class ScopedView:
    """某个目标区域能看到的表格行，以及其中的冲突"""

    rows: tuple[tuple[str, str], ...]
    conflicts: tuple[TriggerConflict, ...]


def _sort_key(trigger: str) -> tuple[str, str]:
    return (trigger.casefold(), trigger)


@dataclass(frozen=True)
class Registry:
    """
    规范注册表

    - skills: 技能 id -> 元数据 (按 id 排序)
    - claims: 触发短语 -> 声明列表 (按技能 id 排序)
    - conflicts: scope 标签重叠的冲突
    - duplicates: 因 id 重复被丢弃的技能
    """

    skills: Mapping[str, SkillMetadata]
    claims: Mapping[str, tuple[TriggerClaim, ...]]
    conflicts: tuple[TriggerConflict, ...] = ()
    duplicates: tuple[MalformedSkillError, ...] = ()
    policy: ConflictPolicy = ConflictPolicy.OMIT

    @property
    def skill_ids(self) -> frozenset[str]:
        return frozenset(self.skills)

    @property
    def scopes(self) -> frozenset[str]:
        """所有技能声明过的 scope"""
        result: set[str] = set()
        for skill in self.skills.values():
            result |= skill.scope
        return frozenset(result)

    def view(
        self,
        scopes: Iterable[str],
        policy: ConflictPolicy | None = None,
    ) -> ScopedView:
        """
        过滤出对某组 scope 可见的行

        同一个文档内一个触发短语只能对应一个技能：即使两个技能通过不同的
        scope 标签进入同一文档，也视为冲突。
        """
        policy = policy or self.policy
        wanted = frozenset(scopes)
        rows: list[tuple[str, str]] = []
        conflicts: list[TriggerConflict] = []

        for trigger, claims in self.claims.items():
            visible = [c for c in claims if c.scope & wanted]
            ids = tuple(sorted({c.skill_id for c in visible}))
            if not ids:
                continue
            if len(ids) == 1:
                rows.append((trigger, ids[0]))
                continue

            overlap: set[str] = set()
            for claim in visible:
                overlap |= claim.scope & wanted
            conflicts.append(TriggerConflict(trigger, ids, frozenset(overlap)))
            if policy is ConflictPolicy.FIRST_WINS:
                rows.append((trigger, ids[0]))

        rows.sort(key=lambda row: _sort_key(row[0]))
        return ScopedView(rows=tuple(rows), conflicts=tuple(conflicts))

    def resolve(self, trigger: str, scopes: Iterable[str] | None = None) -> str:
        """
        查找触发短语对应的唯一技能 id

        Raises:
            KeyError: 触发短语不存在 (或在该 scope 内不可见)
            TriggerConflictError: 有多个技能声明了它
        """
        trigger = trigger.strip()
        claims = self.claims.get(trigger, ())
        if scopes is not None:
            wanted = frozenset(scopes)
            claims = tuple(c for c in claims if c.scope & wanted)
        ids = tuple(sorted({c.skill_id for c in claims}))
        if not ids:
            raise KeyError(trigger)
        if len(ids) > 1:
            raise TriggerConflictError(trigger, ids)
        return ids[0]

    def to_dict(self) -> dict:
        return {
            "skills": [s.to_dict() for s in self.skills.values()],
            "conflicts": [c.to_dict() for c in self.conflicts],
        }


class RegistryBuilder:
    """
    注册表构建器

    按技能 id 的字典序 (而不是发现顺序) 插入，保证同一组技能
    无论以什么顺序发现都得到完全相同的注册表。
    """

    def __init__(self, policy: ConflictPolicy | str = ConflictPolicy.OMIT):
        self.policy = ConflictPolicy.parse(policy)

    def build(self, skills: Iterable[SkillMetadata]) -> Registry:
        by_id: dict[str, SkillMetadata] = {}
        duplicates: list[MalformedSkillError] = []

        ordered = sorted(skills, key=lambda s: (s.id, str(s.source or "")))
        for skill in ordered:
            if not skill.id:
                duplicates.append(MalformedSkillError("Empty skill id", path=skill.source))
                continue
            if skill.id in by_id:
                kept = by_id[skill.id]
                logger.warning(
                    f"Duplicate skill id '{skill.id}' in {skill.source}, "
                    f"keeping {kept.source}"
                )
                duplicates.append(
                    MalformedSkillError(
                        f"Duplicate skill id '{skill.id}'",
                        path=skill.source,
                        details={"kept": str(kept.source) if kept.source else None},
                    )
                )
                continue
            by_id[skill.id] = skill

        claims: dict[str, list[TriggerClaim]] = defaultdict(list)
        for skill in by_id.values():
            for trigger in skill.triggers:
                claims[trigger].append(TriggerClaim(skill.id, skill.scope))

        conflicts = self._detect_conflicts(claims)
        for conflict in conflicts:
            logger.warning(
                f"Trigger conflict '{conflict.trigger}': "
                f"{', '.join(conflict.skill_ids)} (scope: {', '.join(sorted(conflict.scopes))})"
            )

        frozen_claims = {
            trigger: tuple(claims[trigger]) for trigger in sorted(claims, key=_sort_key)
        }
        registry = Registry(
            skills=MappingProxyType(dict(by_id)),
            claims=MappingProxyType(frozen_claims),
            conflicts=tuple(conflicts),
            duplicates=tuple(duplicates),
            policy=self.policy,
        )
        logger.info(
            f"Built registry: {len(by_id)} skills, {len(frozen_claims)} triggers, "
            f"{len(conflicts)} conflicts"
        )
        return registry

    @staticmethod
    def _detect_conflicts(claims: Mapping[str, list[TriggerClaim]]) -> list[TriggerConflict]:
        """对每个触发短语的每个 scope 标签，统计声明它的技能；超过一个即冲突"""
        conflicts: list[TriggerConflict] = []
        for trigger in sorted(claims, key=_sort_key):
            by_tag: dict[str, set[str]] = defaultdict(set)
            for claim in claims[trigger]:
                for tag in claim.scope:
                    by_tag[tag].add(claim.skill_id)

            # 竞争技能集合相同的标签合并为一个冲突
            merged: dict[tuple[str, ...], set[str]] = defaultdict(set)
            for tag, ids in by_tag.items():
                if len(ids) > 1:
                    merged[tuple(sorted(ids))].add(tag)

            for ids in sorted(merged):
                conflicts.append(TriggerConflict(trigger, ids, frozenset(merged[ids])))
        return conflicts


def build_registry(
    skills: Iterable[SkillMetadata],
    policy: ConflictPolicy | str = ConflictPolicy.OMIT,
) -> Registry:
    """便捷函数：构建注册表"""
    return RegistryBuilder(policy).build(skills)

