"""
输入校验

窗口提交的字段在进入 Store 之前统一在这里清洗，规则:
- title / content 必须是字符串
- title 去除首尾空白，超长截断到 MAX_TITLE_LENGTH，空标题替换为 DEFAULT_TITLE
- content 超过 MAX_CONTENT_LENGTH 直接拒绝（截断会丢失用户数据）
- 几何信息必须是整数，width / height 限制在 [MIN_SIZE, MAX_SIZE]
- is_hidden / is_pinned 必须是布尔值
- 未知字段拒绝
"""

from typing import Any

from domains.core.exceptions import ValidationError

from .models import FLAG_FIELDS, GEOMETRY_FIELDS, UPDATABLE_FIELDS

DEFAULT_TITLE = "Untitled"
MAX_TITLE_LENGTH = 500
MAX_CONTENT_LENGTH = 1_000_000
MIN_SIZE = 100
MAX_SIZE = 10_000


def clean_title(title: Any) -> str:
    if not isinstance(title, str):
        raise ValidationError("标题必须是字符串", field="title")
    title = title.strip()
    if not title:
        return DEFAULT_TITLE
    return title[:MAX_TITLE_LENGTH]


def clean_content(content: Any) -> str:
    if not isinstance(content, str):
        raise ValidationError("内容必须是字符串", field="content")
    if len(content) > MAX_CONTENT_LENGTH:
        raise ValidationError(
            f"内容过长: {len(content)} > {MAX_CONTENT_LENGTH}",
            field="content",
        )
    return content


def _clean_geometry(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} 必须是整数", field=name)
    if name in ('width', 'height'):
        return max(MIN_SIZE, min(MAX_SIZE, value))
    return value


def clean_update(fields: dict[str, Any]) -> dict[str, Any]:
    """
    校验并规范化部分更新字段

    Returns:
        只包含合法字段的新字典

    Raises:
        ValidationError: 存在未知字段或字段值非法
    """
    unknown = sorted(set(fields) - set(UPDATABLE_FIELDS))
    if unknown:
        raise ValidationError(
            f"不支持的字段: {', '.join(unknown)}",
            errors=[{"field": name, "message": "unknown field"} for name in unknown],
        )

    cleaned: dict[str, Any] = {}
    for name, value in fields.items():
        if name == 'title':
            cleaned[name] = clean_title(value)
        elif name == 'content':
            cleaned[name] = clean_content(value)
        elif name in GEOMETRY_FIELDS:
            cleaned[name] = _clean_geometry(name, value)
        elif name in FLAG_FIELDS:
            if not isinstance(value, bool):
                raise ValidationError(f"{name} 必须是布尔值", field=name)
            cleaned[name] = value
    return cleaned
