"""
文档区域补丁

在目标文档中定位命名区域，把区域内的表格替换为新渲染的表格。
区域用 (start, end) 偏移表示，补丁是纯文本拼接：区域之外的内容逐字节保留。

支持两种锚点 (优先级从高到低):
1. 注释标记:  <!-- skill-sync:begin auto-invoke --> ... <!-- skill-sync:end auto-invoke -->
2. Markdown 标题: ### Auto-invoke Skills，区域延伸到下一个同级或更高级标题
"""

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..errors import AmbiguousAnchorError, AnchorNotFoundError

if TYPE_CHECKING:
    from .targets import RegionSpec

logger = logging.getLogger(__name__)

_HEADING = re.compile(r"^(#{1,6})[ \t]+(.+?)[ \t]*$")
_FENCE = re.compile(r"^[ \t]*(```|~~~)")


def begin_marker(name: str) -> str:
    return f"<!-- skill-sync:begin {name} -->"


def end_marker(name: str) -> str:
    return f"<!-- skill-sync:end {name} -->"


def _marker_pattern(kind: str, name: str) -> re.Pattern:
    return re.compile(rf"^[ \t]*<!--\s*skill-sync:{kind}\s+{re.escape(name)}\s*-->[ \t]*$")


@dataclass(frozen=True)
class Region:
    """
    已定位的区域

    start/end 是区域正文在文档中的偏移 (不含锚点行本身)
    """

    name: str
    kind: str  # "sentinel" | "heading"
    start: int
    end: int
    level: int = 0  # 标题级别 (仅 heading)


@dataclass(frozen=True)
class _Line:
    offset: int
    end: int  # 含换行符
    text: str  # 不含换行符
    in_fence: bool


def _scan_lines(text: str, base: int = 0) -> list[_Line]:
    """逐行扫描，标记围栏代码块内的行"""
    lines: list[_Line] = []
    offset = base
    fence: str | None = None

    for raw in text.splitlines(keepends=True):
        content = raw.rstrip("\r\n")
        match = _FENCE.match(content)
        if fence is None and match:
            fence = match.group(1)
            in_fence = True
        elif fence is not None:
            in_fence = True
            if match and match.group(1) == fence:
                fence = None
        else:
            in_fence = False
        lines.append(_Line(offset, offset + len(raw), content, in_fence))
        offset += len(raw)

    return lines


def _heading(line: _Line) -> tuple[int, str] | None:
    if line.in_fence:
        return None
    match = _HEADING.match(line.text)
    if not match:
        return None
    title = match.group(2).rstrip("#").strip()
    return len(match.group(1)), title


def locate_region(text: str, spec: "RegionSpec") -> Region:
    """
    定位区域

    Raises:
        AnchorNotFoundError: 找不到起始标记 (或有起始没有结束)
        AmbiguousAnchorError: 起始标记出现多次
    """
    lines = _scan_lines(text)

    begin_re = _marker_pattern("begin", spec.name)
    begins = [i for i, line in enumerate(lines) if not line.in_fence and begin_re.match(line.text)]
    if len(begins) > 1:
        raise AmbiguousAnchorError(
            f"Marker '{begin_marker(spec.name)}' appears {len(begins)} times",
            details={"region": spec.name},
        )
    if begins:
        return _locate_sentinel(lines, begins[0], spec, len(text))

    wanted = spec.heading.casefold()
    matches = []
    for i, line in enumerate(lines):
        heading = _heading(line)
        if heading and heading[1].casefold() == wanted:
            matches.append((i, heading[0]))

    if not matches:
        raise AnchorNotFoundError(
            f"No '{spec.heading}' heading or '{begin_marker(spec.name)}' marker",
            details={"region": spec.name},
        )
    if len(matches) > 1:
        raise AmbiguousAnchorError(
            f"Heading '{spec.heading}' appears {len(matches)} times",
            details={"region": spec.name},
        )

    index, level = matches[0]
    end = len(text)
    for line in lines[index + 1:]:
        heading = _heading(line)
        if heading and heading[0] <= level:
            end = line.offset
            break

    return Region(spec.name, "heading", lines[index].end, end, level)


def _locate_sentinel(lines: list[_Line], index: int, spec: "RegionSpec", length: int) -> Region:
    end_re = _marker_pattern("end", spec.name)
    for line in lines[index + 1:]:
        if not line.in_fence and end_re.match(line.text):
            return Region(spec.name, "sentinel", lines[index].end, line.offset)
    raise AnchorNotFoundError(
        f"Marker '{end_marker(spec.name)}' not found after begin marker",
        details={"region": spec.name},
    )


def find_table(text: str, region: Region) -> tuple[int, int] | None:
    """
    区域内已有表格的 (start, end) 偏移

    注释标记区域整体就是表格；标题区域取第一个连续的 | 行块。
    """
    if region.kind == "sentinel":
        return region.start, region.end

    start = end = None
    for line in _scan_lines(text[region.start:region.end], base=region.start):
        is_row = not line.in_fence and line.text.lstrip().startswith("|")
        if start is None:
            if is_row:
                start, end = line.offset, line.end
        elif is_row:
            end = line.end
        else:
            break

    if start is None:
        return None
    return start, end


def splice(text: str, region: Region, table: str) -> str:
    """把表格拼接进区域，区域之外的文本不变"""
    span = find_table(text, region)
    if span is not None:
        start, end = span
        return text[:start] + table + text[end:]

    # 标题区域内还没有表格：放在已有说明文字之后，前后各空一行
    lead = text[region.start:region.end].rstrip()
    prefix = "" if text[:region.start].endswith("\n") or region.start == 0 else "\n"
    body = prefix + lead + ("\n\n" if lead else "\n") + table
    if region.end < len(text):
        body += "\n"
    return text[:region.start] + body + text[region.end:]


def patch_document(text: str, spec: "RegionSpec", table: str) -> str:
    """
    定位并替换区域

    同样的输入总是得到同样的输出；对结果再打一次同样的补丁不会再有变化。
    """
    region = locate_region(text, spec)
    patched = splice(text, region, table)
    if patched != text:
        logger.debug(f"Region '{spec.name}' changed ({region.kind} anchor at {region.start})")
    return patched
