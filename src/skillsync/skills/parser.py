"""
SKILL.md 解析器

解析 SKILL.md 文件的 YAML frontmatter，提取技能身份和 auto-invoke 触发短语。
Markdown body 不做任何解释。
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..errors import MalformedSkillError

logger = logging.getLogger(__name__)


def slugify(name: str) -> str:
    """技能 id: 去首尾空白、小写、连续空白替换为连字符"""
    return re.sub(r"\s+", "-", name.strip().lower())


@dataclass(frozen=True)
class SkillMetadata:
    """
    技能元数据 (来自 YAML frontmatter)

    - id: 由 name 确定性推导的 slug，同一文档反复解析结果不变
    - display_name: 声明的 name
    - triggers: 有序的触发短语 (已去空白、去重)
    - scope: 该技能应出现在哪些目标文档的表格中
    """

    id: str
    display_name: str
    description: str = ""
    triggers: tuple[str, ...] = ()
    scope: frozenset[str] = frozenset()
    source: Path | None = field(default=None, compare=False)

    @property
    def auto_invoke(self) -> bool:
        """是否会出现在 auto-invoke 表格中"""
        return bool(self.triggers)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.display_name,
            "description": self.description,
            "triggers": list(self.triggers),
            "scope": sorted(self.scope),
            "source": str(self.source) if self.source else None,
        }


class SkillParser:
    """
    SKILL.md 解析器

    纯函数式转换：文本 -> SkillMetadata，无副作用。
    """

    # YAML frontmatter 正则
    FRONTMATTER_PATTERN = re.compile(
        r"^---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|$)",
        re.DOTALL,
    )

    # 触发短语可出现的位置 (按优先级)
    TRIGGER_KEYS = ("auto_invoke", "auto-invoke", "triggers")

    def __init__(self, default_scope: str = "root"):
        self.default_scope = default_scope

    def parse_file(self, path: Path) -> SkillMetadata:
        """
        解析 SKILL.md 文件

        Raises:
            MalformedSkillError: 解析失败
            OSError: 文件无法读取
        """
        content = path.read_text(encoding="utf-8")
        return self.parse_content(content, path)

    def parse_content(self, content: str, path: Path | None = None) -> SkillMetadata:
        """
        解析 SKILL.md 内容

        Args:
            content: 文件内容
            path: 文件路径 (仅用于错误信息和目录名校验)
        """
        match = self.FRONTMATTER_PATTERN.match(content.lstrip("\ufeff"))
        if not match:
            raise MalformedSkillError("Missing YAML frontmatter", path=path)

        try:
            data = yaml.safe_load(match.group(1)) or {}
        except yaml.YAMLError as e:
            raise MalformedSkillError(f"Invalid YAML frontmatter: {e}", path=path) from e

        if not isinstance(data, dict):
            raise MalformedSkillError("Frontmatter must be a mapping", path=path)

        metadata = self._build_metadata(data, path)

        # 目录名与 id 不一致只警告
        if path is not None and path.parent.name and path.parent.name != metadata.id:
            logger.warning(
                f"Skill directory name '{path.parent.name}' does not match "
                f"skill id '{metadata.id}' in {path}"
            )

        return metadata

    def _build_metadata(self, data: dict, path: Path | None) -> SkillMetadata:
        """从 YAML 数据构建元数据"""
        name = data.get("name")
        description = data.get("description")

        if not isinstance(name, str) or not name.strip():
            raise MalformedSkillError("Missing required 'name' field", path=path)
        if not isinstance(description, str) or not description.strip():
            raise MalformedSkillError("Missing required 'description' field", path=path)

        # metadata 块优先，其次是顶层字段
        extra = data.get("metadata") or {}
        if not isinstance(extra, dict):
            raise MalformedSkillError("'metadata' must be a mapping", path=path)

        raw_triggers = self._first_present(extra, data, self.TRIGGER_KEYS)
        raw_scope = self._first_present(extra, data, ("scope",))

        triggers = self._parse_triggers(raw_triggers, path)
        scope = self._parse_scope(raw_scope, path)

        return SkillMetadata(
            id=slugify(name),
            display_name=name.strip(),
            description=description.strip(),
            triggers=triggers,
            scope=scope,
            source=path,
        )

    @staticmethod
    def _first_present(primary: dict, fallback: dict, keys: tuple[str, ...]) -> Any:
        for source in (primary, fallback):
            for key in keys:
                if key in source:
                    return source[key]
        return None

    def _parse_triggers(self, raw: Any, path: Path | None) -> tuple[str, ...]:
        """触发短语：字符串或字符串列表，只去空白，拒绝空短语"""
        if raw is None:
            return ()
        items = [raw] if isinstance(raw, str) else raw
        if not isinstance(items, list):
            raise MalformedSkillError("'auto_invoke' must be a string or a list", path=path)

        triggers: list[str] = []
        for item in items:
            if not isinstance(item, str):
                raise MalformedSkillError(f"Trigger must be a string, got {item!r}", path=path)
            phrase = item.strip()
            if not phrase:
                raise MalformedSkillError("Empty trigger phrase", path=path)
            if phrase not in triggers:
                triggers.append(phrase)
        return tuple(triggers)

    def _parse_scope(self, raw: Any, path: Path | None) -> frozenset[str]:
        if raw is None:
            return frozenset({self.default_scope})
        items = [raw] if isinstance(raw, str) else raw
        if not isinstance(items, list) or not all(isinstance(s, str) for s in items):
            raise MalformedSkillError("'scope' must be a string or a list of strings", path=path)
        scope = frozenset(s.strip().lower() for s in items if s.strip())
        if not scope:
            raise MalformedSkillError("'scope' is empty", path=path)
        return scope


# 全局解析器实例
skill_parser = SkillParser()


def parse_skill(content: str, path: Path | None = None) -> SkillMetadata:
    """便捷函数：解析技能文本"""
    return skill_parser.parse_content(content, path)


def parse_skill_file(path: Path) -> SkillMetadata:
    """便捷函数：解析技能文件"""
    return skill_parser.parse_file(path)
