"""
目标文档配置

目标文档来源 (优先级从高到低):
1. 命令行 --target PATH=scope1,scope2
2. 配置项 targets ({路径: [scope, ...]})
3. 配置文件 skill-sync.yaml
4. 按 scope 推导: root -> AGENTS.md，其他 scope X -> X/AGENTS.md
   已有区域锚点的 AGENTS.md 即使其 scope 已没有技能也会被检查
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from ..errors import AmbiguousAnchorError, AnchorNotFoundError, IOFailure
from .patcher import locate_region

logger = logging.getLogger(__name__)

DEFAULT_REGION_NAME = "auto-invoke"
DEFAULT_REGION_HEADING = "Auto-invoke Skills"
AGENTS_FILENAME = "AGENTS.md"
ROOT_SCOPE = "root"


def _normalize_scopes(scopes: Iterable[str]) -> frozenset[str]:
    return frozenset(s.strip().lower() for s in scopes if s and s.strip())


@dataclass(frozen=True)
class RegionSpec:
    """文档中的一个命名区域及其反映的 scope"""

    name: str = DEFAULT_REGION_NAME
    heading: str = DEFAULT_REGION_HEADING
    scopes: frozenset[str] = frozenset()


@dataclass(frozen=True)
class TargetDocument:
    """
    目标文档

    required=False 的文档 (按 scope 推导而来) 不存在时直接跳过
    """

    path: Path
    regions: tuple[RegionSpec, ...] = field(default_factory=tuple)
    required: bool = True

    @property
    def scopes(self) -> frozenset[str]:
        result: set[str] = set()
        for region in self.regions:
            result |= region.scopes
        return frozenset(result)

    def covers(self, scopes: Iterable[str]) -> bool:
        return bool(self.scopes & _normalize_scopes(scopes))


def make_target(
    path: Path | str,
    scopes: Iterable[str],
    *,
    name: str = DEFAULT_REGION_NAME,
    heading: str = DEFAULT_REGION_HEADING,
    required: bool = True,
) -> TargetDocument:
    """只有一个区域的目标文档"""
    return TargetDocument(
        path=Path(path),
        regions=(RegionSpec(name=name, heading=heading, scopes=_normalize_scopes(scopes)),),
        required=required,
    )


def parse_target_option(value: str) -> tuple[str, list[str]]:
    """
    解析命令行 --target 参数

    "ui/AGENTS.md=ui,frontend" -> ("ui/AGENTS.md", ["ui", "frontend"])
    """
    if "=" not in value:
        raise ValueError(f"Expected PATH=scope[,scope...], got {value!r}")
    path, _, scopes = value.partition("=")
    scope_list = [s.strip() for s in scopes.split(",") if s.strip()]
    if not path.strip() or not scope_list:
        raise ValueError(f"Expected PATH=scope[,scope...], got {value!r}")
    return path.strip(), scope_list


def targets_from_mapping(
    mapping: Mapping[str, Iterable[str]],
    root: Path,
    *,
    name: str = DEFAULT_REGION_NAME,
    heading: str = DEFAULT_REGION_HEADING,
) -> list[TargetDocument]:
    """{路径: [scope, ...]} -> 目标文档列表 (按映射顺序)"""
    return [
        make_target(root / path, scopes, name=name, heading=heading)
        for path, scopes in mapping.items()
    ]


def load_targets_file(
    path: Path,
    root: Path,
    *,
    name: str = DEFAULT_REGION_NAME,
    heading: str = DEFAULT_REGION_HEADING,
) -> list[TargetDocument]:
    """
    读取 YAML 配置文件

    格式:
        targets:
          - path: AGENTS.md
            scopes: [root]
          - path: ui/AGENTS.md
            regions:
              - name: auto-invoke
                heading: Auto-invoke Skills
                scopes: [ui]

    Raises:
        IOFailure: 文件无法读取或格式错误
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise IOFailure(f"Cannot read target config: {e}", path=path) from e

    entries = data.get("targets", []) if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise IOFailure("'targets' must be a list", path=path)

    targets: list[TargetDocument] = []
    for entry in entries:
        if not isinstance(entry, dict) or not isinstance(entry.get("path"), str):
            raise IOFailure(f"Invalid target entry: {entry!r}", path=path)

        regions = entry.get("regions")
        if regions:
            if not isinstance(regions, list):
                raise IOFailure(f"'regions' must be a list: {regions!r}", path=path)
            specs = tuple(_region_spec(r, path, name, heading) for r in regions)
        else:
            specs = (
                RegionSpec(
                    name=name,
                    heading=heading,
                    scopes=_normalize_scopes(_scope_list(entry.get("scopes"), path)),
                ),
            )
        targets.append(TargetDocument(path=root / entry["path"], regions=specs))

    logger.debug(f"Loaded {len(targets)} targets from {path}")
    return targets


def _region_spec(raw, path: Path, name: str, heading: str) -> RegionSpec:
    if not isinstance(raw, dict):
        raise IOFailure(f"Invalid region entry: {raw!r}", path=path)
    region_name = raw.get("name", name)
    region_heading = raw.get("heading", heading)
    if not isinstance(region_name, str) or not isinstance(region_heading, str):
        raise IOFailure(f"Region name and heading must be strings: {raw!r}", path=path)
    return RegionSpec(
        name=region_name,
        heading=region_heading,
        scopes=_normalize_scopes(_scope_list(raw.get("scopes"), path)),
    )


def _scope_list(value, path: Path) -> list[str]:
    """scopes: 字符串或字符串列表"""
    if value is None:
        return []
    items = [value] if isinstance(value, str) else value
    if not isinstance(items, list) or not all(isinstance(s, str) for s in items):
        raise IOFailure(f"'scopes' must be a string or a list of strings: {value!r}", path=path)
    return items


def default_targets(
    scopes: Iterable[str],
    root: Path,
    *,
    name: str = DEFAULT_REGION_NAME,
    heading: str = DEFAULT_REGION_HEADING,
) -> list[TargetDocument]:
    """按 scope 推导目标文档：root -> AGENTS.md (排在最前)，X -> X/AGENTS.md"""
    targets = []
    for scope in sorted(_normalize_scopes(scopes), key=lambda s: (s != ROOT_SCOPE, s)):
        path = root / AGENTS_FILENAME if scope == ROOT_SCOPE else root / scope / AGENTS_FILENAME
        targets.append(make_target(path, [scope], name=name, heading=heading, required=False))
    return targets


def discover_scopes(
    root: Path,
    *,
    name: str = DEFAULT_REGION_NAME,
    heading: str = DEFAULT_REGION_HEADING,
) -> frozenset[str]:
    """
    已存在且带区域锚点的 AGENTS.md 对应的 scope

    某个 scope 的最后一个技能被删除后，它的文档仍需检查，
    旧表格中的条目才会作为孤立条目报告并被清除。
    没有锚点的 AGENTS.md 不属于同步范围，忽略。
    """
    spec = RegionSpec(name=name, heading=heading)
    candidates = [(ROOT_SCOPE, root / AGENTS_FILENAME)]
    for path in sorted(root.glob(f"*/{AGENTS_FILENAME}")):
        scope = path.parent.name
        # 只有目录名本身就是规范 scope 时，推导出的路径才会指回这个文件
        if scope == scope.strip().lower() and scope != ROOT_SCOPE:
            candidates.append((scope, path))

    found: set[str] = set()
    for scope, path in candidates:
        if not path.is_file():
            continue
        try:
            locate_region(path.read_bytes().decode("utf-8"), spec)
        except AnchorNotFoundError:
            continue
        except (AmbiguousAnchorError, OSError, UnicodeDecodeError):
            # 交给规划阶段报告为失败
            pass
        found.add(scope)

    if found:
        logger.debug(f"Discovered anchored documents for scopes: {', '.join(sorted(found))}")
    return frozenset(found)


def filter_targets(targets: list[TargetDocument], scopes: Iterable[str] | None) -> list[TargetDocument]:
    """只保留覆盖指定 scope 的文档 (scopes 为空时不过滤)"""
    wanted = _normalize_scopes(scopes or [])
    if not wanted:
        return list(targets)
    return [t for t in targets if t.covers(wanted)]
