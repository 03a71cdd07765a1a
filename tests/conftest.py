"""测试公共 fixture"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest
import yaml

from skillsync.logging import ColoredConsoleHandler, ErrorOnlyHandler
from skillsync.skills import slugify


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """setup_logging 会替换根日志处理器，测试结束后移除并关闭"""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in root.handlers[:]:
        if isinstance(handler, (ColoredConsoleHandler, ErrorOnlyHandler, RotatingFileHandler)):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


@pytest.fixture
def skills_dir(tmp_path) -> Path:
    path = tmp_path / "skills"
    path.mkdir()
    return path


@pytest.fixture
def write_skill(skills_dir):
    """写一个 SKILL.md，返回其路径"""

    def _write(
        name: str,
        triggers=(),
        scope=("root",),
        dirname: str | None = None,
        body: str = "Follow the guide.",
    ) -> Path:
        front = yaml.safe_dump(
            {
                "name": name,
                "description": f"{name} guide.",
                "metadata": {"scope": list(scope), "auto_invoke": list(triggers)},
            },
            sort_keys=False,
            allow_unicode=True,
        )
        path = skills_dir / (dirname or slugify(name)) / "SKILL.md"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"---\n{front}---\n\n# {name}\n\n{body}\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def write_doc(tmp_path):
    """写一个目标文档，返回其路径"""

    def _write(relative: str, content: str) -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content.encode("utf-8"))
        return path

    return _write


EMPTY_REGION_DOC = """# Agents

Project guidance.

## Auto-invoke Skills

| Action | Skill |
|--------|-------|

## Testing

Run the suite before pushing.
"""
