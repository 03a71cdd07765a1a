"""
技能加载器

从技能目录发现 SKILL.md 并逐个解析。
单个技能解析失败只记录，不影响其他技能。
"""

import concurrent.futures
import logging
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import SyncError, classify_error
from .parser import SkillMetadata, SkillParser

logger = logging.getLogger(__name__)

SKILL_FILENAME = "SKILL.md"


@dataclass
class LoadResult:
    """加载结果：成功解析的技能 + 失败的文档"""

    skills: list[SkillMetadata] = field(default_factory=list)
    errors: list[SyncError] = field(default_factory=list)


class SkillLoader:
    """
    技能加载器

    支持:
    - 发现 <skills_dir>/*/SKILL.md
    - 解析失败隔离 (MalformedSkillError / IOFailure)
    - 可选多线程解析，结果顺序与路径顺序一致
    """

    def __init__(self, parser: SkillParser | None = None, max_workers: int = 1):
        self.parser = parser or SkillParser()
        self.max_workers = max(1, max_workers)

    def discover(self, skills_dir: Path) -> list[Path]:
        """
        发现技能文档

        Returns:
            按路径排序的 SKILL.md 列表
        """
        if not skills_dir.is_dir():
            logger.warning(f"Skill directory not found: {skills_dir}")
            return []

        paths = sorted(p for p in skills_dir.glob(f"*/{SKILL_FILENAME}") if p.is_file())
        logger.debug(f"Discovered {len(paths)} skill documents in {skills_dir}")
        return paths

    def load_skill(self, path: Path) -> SkillMetadata | SyncError:
        """加载单个技能，失败时返回结构化错误而不是抛出"""
        try:
            return self.parser.parse_file(path)
        except Exception as e:
            error = classify_error(e, path)
            logger.error(f"Failed to load skill from {path}: {error.message}")
            return error

    def load_paths(self, paths: list[Path]) -> LoadResult:
        if self.max_workers > 1 and len(paths) > 1:
            with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                outcomes = list(executor.map(self.load_skill, paths))
        else:
            outcomes = [self.load_skill(p) for p in paths]

        result = LoadResult()
        for outcome in outcomes:
            if isinstance(outcome, SyncError):
                result.errors.append(outcome)
            else:
                result.skills.append(outcome)
        return result

    def load_directory(self, skills_dir: Path) -> LoadResult:
        """
        加载目录下所有技能

        Args:
            skills_dir: 技能目录

        Returns:
            LoadResult
        """
        result = self.load_paths(self.discover(skills_dir))
        logger.info(
            f"Loaded {len(result.skills)} skills from {skills_dir}"
            + (f" ({len(result.errors)} failed)" if result.errors else "")
        )
        return result
