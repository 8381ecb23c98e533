"""
便利贴数据模型定义

一条笔记（Note）是带标题的 Markdown 文本，附带可见性/置顶标记，
以及弹出为浮动窗口时最后一次的位置和大小。

Note 是不可变对象：Store 通过 dataclasses.replace 生成新版本，
窗口会话拿到的永远是副本，无法直接修改共享状态。
"""

import uuid as uuid_lib
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

# 浮动窗口默认几何信息
DEFAULT_POSITION_X = 100
DEFAULT_POSITION_Y = 100
DEFAULT_WIDTH = 320
DEFAULT_HEIGHT = 280

GEOMETRY_FIELDS = ('position_x', 'position_y', 'width', 'height')
FLAG_FIELDS = ('is_hidden', 'is_pinned')
UPDATABLE_FIELDS = ('title', 'content') + GEOMETRY_FIELDS + FLAG_FIELDS


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_note_id() -> str:
    return uuid_lib.uuid4().hex


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
    else:
        raise ValueError(f"invalid timestamp: {value!r}")
    # 旧数据没有时区信息时按 UTC 处理
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _parse_int(value: Any, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"invalid geometry value: {value!r}")
    return int(value)


@dataclass(frozen=True)
class Note:
    """
    便利贴数据类

    Attributes:
        id: 笔记 ID（创建时分配，永不复用）
        title: 标题
        content: 内容（Markdown 源文本，核心层不解析）
        created_at: 创建时间（UTC）
        updated_at: 更新时间（UTC，单调不减）
        is_hidden: 是否隐藏
        is_pinned: 是否置顶
        position_x / position_y / width / height: 浮动窗口几何信息
        deleted_at: 移入回收站的时间，活动笔记为 None
    """
    id: str = field(default_factory=new_note_id)
    title: str = ""
    content: str = ""
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    is_hidden: bool = False
    is_pinned: bool = False

    position_x: int = DEFAULT_POSITION_X
    position_y: int = DEFAULT_POSITION_Y
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT

    deleted_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """转换为可 JSON 序列化的字典"""
        data = {
            'id': self.id,
            'title': self.title,
            'content': self.content,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
            'is_hidden': self.is_hidden,
            'is_pinned': self.is_pinned,
            'position_x': self.position_x,
            'position_y': self.position_y,
            'width': self.width,
            'height': self.height,
        }
        if self.deleted_at is not None:
            data['deleted_at'] = self.deleted_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'Note':
        """
        从字典创建笔记实例

        缺失的几何信息使用默认值；id / 时间戳缺失或类型错误时抛出
        KeyError / ValueError / TypeError，由加载方按损坏文件处理。
        """
        if not isinstance(data, dict):
            raise TypeError(f"note record must be an object, got {type(data).__name__}")

        note_id = data['id']
        if not isinstance(note_id, str) or not note_id:
            raise ValueError(f"invalid note id: {note_id!r}")

        title = data.get('title', '')
        content = data.get('content', '')
        if not isinstance(title, str) or not isinstance(content, str):
            raise ValueError(f"note {note_id}: title/content must be strings")

        created_at = _parse_datetime(data['created_at'])
        updated_at = _parse_datetime(data.get('updated_at') or data['created_at'])
        deleted_at = data.get('deleted_at')

        return cls(
            id=note_id,
            title=title,
            content=content,
            created_at=created_at,
            # 保证 updated_at >= created_at
            updated_at=max(updated_at, created_at),
            is_hidden=bool(data.get('is_hidden', False)),
            is_pinned=bool(data.get('is_pinned', False)),
            position_x=_parse_int(data.get('position_x'), DEFAULT_POSITION_X),
            position_y=_parse_int(data.get('position_y'), DEFAULT_POSITION_Y),
            width=_parse_int(data.get('width'), DEFAULT_WIDTH),
            height=_parse_int(data.get('height'), DEFAULT_HEIGHT),
            deleted_at=_parse_datetime(deleted_at) if deleted_at else None,
        )

    def with_changes(self, **changes) -> 'Note':
        """返回应用了修改的新版本"""
        return replace(self, **changes)

    @property
    def geometry(self) -> dict[str, int]:
        """浮动窗口几何信息"""
        return {name: getattr(self, name) for name in GEOMETRY_FIELDS}

    @property
    def is_trashed(self) -> bool:
        return self.deleted_at is not None
