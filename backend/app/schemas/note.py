"""Note-related Pydantic schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr


class NoteCreate(BaseModel):
    """Note create request.

    标题的清洗（去空白、截断、空标题替换）在领域层完成。
    """

    model_config = ConfigDict(extra="forbid")

    title: StrictStr = Field("", description="笔记标题")
    content: StrictStr = Field("", description="笔记内容（Markdown 格式）")


class NoteUpdate(BaseModel):
    """Note partial update request. 只合并请求中出现的字段。"""

    model_config = ConfigDict(extra="forbid")

    title: Optional[StrictStr] = None
    content: Optional[StrictStr] = None
    position_x: Optional[StrictInt] = None
    position_y: Optional[StrictInt] = None
    width: Optional[StrictInt] = Field(None, description="宽度，限制在 [100, 10000]")
    height: Optional[StrictInt] = Field(None, description="高度，限制在 [100, 10000]")
    is_hidden: Optional[StrictBool] = None
    is_pinned: Optional[StrictBool] = None


class Note(BaseModel):
    """Complete note model for API responses."""

    id: str = Field(..., description="笔记 ID")
    title: str
    content: str
    created_at: datetime
    updated_at: datetime
    is_hidden: bool = False
    is_pinned: bool = False
    position_x: int
    position_y: int
    width: int
    height: int
    deleted_at: Optional[datetime] = Field(None, description="移入回收站的时间")


class SearchResult(BaseModel):
    """Search hit: note plus the content excerpt around the first match."""

    note: Note
    match_context: Optional[str] = Field(
        None, description="匹配上下文；仅标题匹配时为空字符串，空查询时为 null"
    )
    title_match: bool = False


class HiddenState(BaseModel):
    is_hidden: bool


class PinnedState(BaseModel):
    is_pinned: bool


class UnhideAllResult(BaseModel):
    count: int = Field(..., description="取消隐藏的笔记数量")


class NoteStats(BaseModel):
    """Note statistics."""

    root: str = Field(..., description="当前存储目录")
    active: int = Field(..., description="活动笔记数")
    hidden: int = Field(0, description="隐藏笔记数")
    trashed: int = Field(0, description="回收站笔记数")
