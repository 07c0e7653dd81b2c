"""
issue 引用提取（纯函数，非 IO）。

规则：
- 匹配 `#` 后面紧跟的一串数字，例如 `#123`
- 丢弃指向自己的引用（不允许自环）以及解析结果为 0 的引用
- 同一轮提取里重复出现只算一次，保留首次出现的顺序（保证遍历顺序确定）
"""

from __future__ import annotations

import re
from collections.abc import Iterable

ISSUE_REFERENCE_PATTERN = re.compile(r"#([0-9]+)")


def extract_issue_references(text: str | None, own_iid: int) -> list[int]:
    """从一段文本里提取被引用的 issue iid（已去重、已排除自身）。"""
    if not text:
        return []
    found: dict[int, None] = {}
    for match in ISSUE_REFERENCE_PATTERN.finditer(text):
        try:
            ref = int(match.group(1))
        except ValueError:
            continue
        if ref == 0 or ref == own_iid:
            continue
        found.setdefault(ref, None)
    return list(found)


def collect_linked_issue_ids(description: str | None, note_bodies: Iterable[str | None], own_iid: int) -> list[int]:
    """
    合并 description 与全部评论里的引用。

    顺序：先 description，再按评论顺序；跨来源也只保留一次。
    """
    merged: dict[int, None] = {}
    for ref in extract_issue_references(description, own_iid=own_iid):
        merged.setdefault(ref, None)
    for body in note_bodies:
        for ref in extract_issue_references(body, own_iid=own_iid):
            merged.setdefault(ref, None)
    return list(merged)
