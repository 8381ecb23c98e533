"""Note API routes.

提供笔记的 CRUD、隐藏/置顶切换与搜索接口。

Service 每次请求都从 root_manager 取当前值；存储目录切换瞬间仍在旧目录上
执行的请求返回 409 STORE_CLOSED，客户端重新加载后重试。
"""

import logging

from fastapi import APIRouter, Depends, Path, Query

from app.schemas.common import ApiResponse, model_to_dict
from app.schemas.note import (
    HiddenState,
    Note,
    NoteCreate,
    NoteStats,
    NoteUpdate,
    PinnedState,
    SearchResult,
    UnhideAllResult,
)
from app.core.deps import get_note_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=ApiResponse[list[Note]])
async def list_notes(
    include_hidden: bool = Query(False, description="是否包含隐藏的笔记"),
    service=Depends(get_note_service),
):
    """
    获取笔记列表

    置顶笔记在前，其余按更新时间降序。
    """
    notes = await service.get_notes(include_hidden)
    return ApiResponse(data=[Note(**model_to_dict(n)) for n in notes])


@router.get("/stats", response_model=ApiResponse[NoteStats])
async def get_stats(service=Depends(get_note_service)):
    """获取笔记统计信息"""
    stats = await service.get_stats()
    return ApiResponse(data=NoteStats(**stats))


@router.get("/search", response_model=ApiResponse[list[SearchResult]])
async def search_notes(
    q: str = Query("", description="搜索关键词（不区分大小写）"),
    include_hidden: bool = Query(False),
    service=Depends(get_note_service),
):
    """
    搜索笔记

    标题匹配排在仅内容匹配之前；空关键词等同于列表。
    """
    hits = await service.search_notes(q, include_hidden)
    return ApiResponse(
        data=[
            SearchResult(
                note=Note(**model_to_dict(hit.note)),
                match_context=hit.match_context,
                title_match=hit.title_match,
            )
            for hit in hits
        ]
    )


@router.post("/unhide-all", response_model=ApiResponse[UnhideAllResult])
async def unhide_all(service=Depends(get_note_service)):
    """取消所有笔记的隐藏"""
    count = await service.unhide_all()
    return ApiResponse(data=UnhideAllResult(count=count), message=f"已取消隐藏 {count} 条笔记")


@router.get("/{note_id}", response_model=ApiResponse[Note])
async def get_note(
    note_id: str = Path(..., description="笔记 ID"),
    service=Depends(get_note_service),
):
    """获取笔记详情"""
    note = await service.get_note(note_id)
    return ApiResponse(data=Note(**model_to_dict(note)))


@router.post("", response_model=ApiResponse[Note], status_code=201)
async def create_note(
    request: NoteCreate,
    service=Depends(get_note_service),
):
    """创建笔记"""
    note = await service.create_note(request.title, request.content)
    return ApiResponse(data=Note(**model_to_dict(note)), message="笔记创建成功")


@router.patch("/{note_id}", response_model=ApiResponse[Note])
async def update_note(
    request: NoteUpdate,
    note_id: str = Path(..., description="笔记 ID"),
    service=Depends(get_note_service),
):
    """
    部分更新笔记

    只合并请求体中出现的字段；所有字段都与当前值相同时不写盘。
    """
    updates = request.model_dump(exclude_unset=True)
    note = await service.update_note(note_id, **updates)
    return ApiResponse(data=Note(**model_to_dict(note)))


@router.delete("/{note_id}", response_model=ApiResponse[Note])
async def delete_note(
    note_id: str = Path(..., description="笔记 ID"),
    service=Depends(get_note_service),
):
    """删除笔记（移入回收站）"""
    note = await service.delete_note(note_id)
    return ApiResponse(data=Note(**model_to_dict(note)), message="笔记已移入回收站")


@router.post("/{note_id}/toggle-hidden", response_model=ApiResponse[HiddenState])
async def toggle_hidden(
    note_id: str = Path(..., description="笔记 ID"),
    service=Depends(get_note_service),
):
    """切换隐藏状态"""
    note = await service.toggle_hidden(note_id)
    return ApiResponse(data=HiddenState(is_hidden=note.is_hidden))


@router.post("/{note_id}/toggle-pinned", response_model=ApiResponse[PinnedState])
async def toggle_pinned(
    note_id: str = Path(..., description="笔记 ID"),
    service=Depends(get_note_service),
):
    """切换置顶状态"""
    note = await service.toggle_pinned(note_id)
    return ApiResponse(data=PinnedState(is_pinned=note.is_pinned))
