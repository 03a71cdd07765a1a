"""
auto-invoke 表格渲染

把某个区域可见的「触发短语 -> 技能 id」行渲染成对齐的 Markdown 表格。
相同输入总是得到逐字节相同的输出，补丁阶段靠字符串比较判断是否有变化。
"""

import re
from collections.abc import Iterable

HEADER = ("Action", "Skill")

_CELL_SPLIT = re.compile(r"(?<!\\)\|")
_SEPARATOR_CELL = re.compile(r"^\s*:?-+:?\s*$")


def _escape(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def _row_key(row: tuple[str, str]) -> tuple[str, str, str]:
    trigger, skill_id = row
    return (trigger.casefold(), trigger, skill_id)


def render_table(rows: Iterable[tuple[str, str]]) -> str:
    """
    渲染两列表格

    Args:
        rows: (触发短语, 技能 id)，顺序无关

    Returns:
        以换行结尾的表格文本；没有行时只有表头和分隔线
    """
    cells = [(_escape(trigger), f"`{_escape(skill_id)}`") for trigger, skill_id in sorted(rows, key=_row_key)]

    left = max([len(HEADER[0])] + [len(c[0]) for c in cells])
    right = max([len(HEADER[1])] + [len(c[1]) for c in cells])

    lines = [
        f"| {HEADER[0].ljust(left)} | {HEADER[1].ljust(right)} |",
        f"|{'-' * (left + 2)}|{'-' * (right + 2)}|",
    ]
    for trigger, skill in cells:
        lines.append(f"| {trigger.ljust(left)} | {skill.ljust(right)} |")

    return "\n".join(lines) + "\n"


def _split_cells(line: str) -> list[str]:
    body = line.strip()
    if body.startswith("|"):
        body = body[1:]
    if body.endswith("|") and not body.endswith("\\|"):
        body = body[:-1]
    return [cell.strip() for cell in _CELL_SPLIT.split(body)]


def parse_table_rows(text: str) -> list[tuple[str, str]]:
    """
    读回表格中已有的行 (用于检测孤立条目)

    只取分隔线之后、至少两列的行；两列都反转义，技能 id 去掉反引号。
    """
    rows: list[tuple[str, str]] = []
    seen_separator = False

    for line in text.splitlines():
        if not line.lstrip().startswith("|"):
            if seen_separator:
                break
            continue
        cells = _split_cells(line)
        if not seen_separator:
            if cells and all(_SEPARATOR_CELL.match(c) for c in cells):
                seen_separator = True
            continue
        if len(cells) < 2:
            continue
        trigger = cells[0].replace("\\|", "|")
        skill_id = cells[1].strip("`").strip().replace("\\|", "|")
        if trigger or skill_id:
            rows.append((trigger, skill_id))

    return rows
