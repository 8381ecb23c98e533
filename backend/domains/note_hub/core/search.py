"""
笔记搜索

对 Store 当前快照做线性扫描（笔记数量很少，不维护索引）。

排序规则:
1. 标题命中的排在只有内容命中的前面
2. 同一组内按 updated_at 降序

match_context 是内容中第一次命中位置附近的原文片段，供调用方高亮。
只有标题命中时为空字符串；空查询时为 None。
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass

from .models import Note

CONTEXT_LENGTH = 50


@dataclass(frozen=True)
class SearchHit:
    """搜索结果"""
    note: Note
    match_context: str | None = None
    title_match: bool = False


def sort_notes(notes: Iterable[Note]) -> list[Note]:
    """置顶优先，然后按 updated_at 降序"""
    by_time = sorted(notes, key=lambda n: n.updated_at, reverse=True)
    return sorted(by_time, key=lambda n: not n.is_pinned)


def visible_notes(notes: Iterable[Note], include_hidden: bool = False) -> list[Note]:
    return sort_notes(n for n in notes if include_hidden or not n.is_hidden)


def extract_context(content: str, start: int, end: int, length: int = CONTEXT_LENGTH) -> str:
    """
    截取命中位置附近的片段

    命中部分尽量居中，片段长度不超过 max(length, 命中长度)。
    """
    match_len = end - start
    window = max(length, match_len)
    before = (window - match_len) // 2
    left = max(0, start - before)
    right = min(len(content), left + window)
    # 靠近末尾时向左补齐
    left = max(0, right - window)
    return content[left:right]


def search_notes(
    notes: Iterable[Note],
    query: str,
    include_hidden: bool = False,
) -> list[SearchHit]:
    """
    搜索笔记

    Args:
        notes: 笔记快照
        query: 关键词（大小写不敏感的子串匹配）
        include_hidden: 是否包含隐藏笔记

    Returns:
        排好序的 SearchHit 列表
    """
    query = (query or "").strip()
    if not query:
        return [SearchHit(note=n) for n in visible_notes(notes, include_hidden)]

    pattern = re.compile(re.escape(query), re.IGNORECASE)

    title_hits: list[SearchHit] = []
    content_hits: list[SearchHit] = []
    for note in notes:
        if note.is_hidden and not include_hidden:
            continue

        title_match = pattern.search(note.title) is not None
        content_match = pattern.search(note.content)
        if not title_match and content_match is None:
            continue

        context = ""
        if content_match is not None:
            context = extract_context(note.content, content_match.start(), content_match.end())

        hit = SearchHit(note=note, match_context=context, title_match=title_match)
        (title_hits if title_match else content_hits).append(hit)

    def by_updated(hit: SearchHit):
        return hit.note.updated_at

    title_hits.sort(key=by_updated, reverse=True)
    content_hits.sort(key=by_updated, reverse=True)
    return title_hits + content_hits
