"""
技能系统

- 解析: SKILL.md frontmatter -> SkillMetadata
- 加载: 从技能目录发现并解析所有 SKILL.md
- 注册: 聚合为「触发短语 -> 技能 id」的不可变注册表，检测冲突
"""

from .loader import SKILL_FILENAME, LoadResult, SkillLoader
from .parser import (
    SkillMetadata,
    SkillParser,
    parse_skill,
    parse_skill_file,
    slugify,
)
from .registry import (
    ConflictPolicy,
    Registry,
    RegistryBuilder,
    ScopedView,
    TriggerClaim,
    TriggerConflict,
    build_registry,
)

__all__ = [
    # Parser
    "SkillParser",
    "SkillMetadata",
    "parse_skill",
    "parse_skill_file",
    "slugify",
    # Loader
    "SkillLoader",
    "LoadResult",
    "SKILL_FILENAME",
    # Registry
    "Registry",
    "RegistryBuilder",
    "ScopedView",
    "TriggerClaim",
    "TriggerConflict",
    "ConflictPolicy",
    "build_registry",
]
