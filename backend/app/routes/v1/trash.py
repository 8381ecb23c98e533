"""Trash API routes.

回收站中的笔记无限期保留，只有显式 purge 才会永久删除。
"""

import logging

from fastapi import APIRouter, Depends, Path

from app.schemas.common import ApiResponse, model_to_dict
from app.schemas.note import Note
from app.core.deps import get_note_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=ApiResponse[list[Note]])
async def list_trash(service=Depends(get_note_service)):
    """回收站列表，最近删除的在前"""
    notes = await service.list_trash()
    return ApiResponse(data=[Note(**model_to_dict(n)) for n in notes])


@router.post("/{note_id}/restore", response_model=ApiResponse[Note])
async def restore_note(
    note_id: str = Path(..., description="笔记 ID"),
    service=Depends(get_note_service),
):
    """从回收站恢复笔记"""
    note = await service.restore_note(note_id)
    return ApiResponse(data=Note(**model_to_dict(note)), message="笔记已恢复")


@router.delete("/{note_id}", response_model=ApiResponse)
async def purge_note(
    note_id: str = Path(..., description="笔记 ID"),
    service=Depends(get_note_service),
):
    """从回收站永久删除"""
    await service.purge_note(note_id)
    logger.info(f"Note purged via API: {note_id}")
    return ApiResponse(message="笔记已永久删除")
