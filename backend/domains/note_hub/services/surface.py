"""
窗口会话

SurfaceSession 是嵌入式窗口（主窗口、浮动便利贴）访问笔记的客户端句柄。
每次请求都通过 RootLifecycleManager 取当前 Service，存储目录切换后自动指向新目录；
切换瞬间仍在旧 Service 上执行的请求会收到 StoreClosedError，重新加载后重试即可。
"""

import logging
import uuid
from typing import Any, Optional

from domains.core.exceptions import ApplicationError

from ..core.models import Note
from ..core.search import SearchHit
from .autosave import AutoSaver
from .events import Subscription
from .note_service import NoteService
from .root_manager import RootLifecycleManager

logger = logging.getLogger(__name__)


class SurfaceSession:
    """
    单个窗口的会话

    使用示例:
        session = SurfaceSession(manager, name="sticky")
        note = await session.create_note("Idea")
        async for event in session.events():
            ...
        await session.close()
    """

    def __init__(self, manager: RootLifecycleManager, name: str = ""):
        self.id = uuid.uuid4().hex[:8]
        self.name = name or f"surface-{self.id}"
        self._manager = manager
        self._subscription: Optional[Subscription] = None
        self._autosaver: Optional[AutoSaver] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def _service(self) -> NoteService:
        if self._closed:
            raise RuntimeError(f"surface {self.name} is closed")
        return self._manager.service

    # ==================== 笔记请求 ====================

    async def get_notes(self, include_hidden: bool = False) -> list[Note]:
        return await self._service.get_notes(include_hidden)

    async def get_note(self, note_id: str) -> Note:
        return await self._service.get_note(note_id)

    async def create_note(self, title: str, content: str = "") -> Note:
        return await self._service.create_note(title, content)

    async def update_note(self, note_id: str, updates: dict[str, Any]) -> Note:
        """部分更新：updates 只包含需要修改的字段（标题、内容、位置、尺寸、标记）"""
        return await self._service.update_note(note_id, **updates)

    async def delete_note(self, note_id: str) -> Note:
        return await self._service.delete_note(note_id)

    async def toggle_hidden(self, note_id: str) -> dict[str, bool]:
        note = await self._service.toggle_hidden(note_id)
        return {"is_hidden": note.is_hidden}

    async def toggle_pinned(self, note_id: str) -> dict[str, bool]:
        note = await self._service.toggle_pinned(note_id)
        return {"is_pinned": note.is_pinned}

    async def unhide_all(self) -> dict[str, int]:
        count = await self._service.unhide_all()
        return {"count": count}

    async def search_notes(self, query: str, include_hidden: bool = False) -> list[SearchHit]:
        return await self._service.search_notes(query, include_hidden)

    async def list_trash(self) -> list[Note]:
        return await self._service.list_trash()

    async def restore(self, note_id: str) -> Note:
        return await self._service.restore_note(note_id)

    async def purge(self, note_id: str) -> None:
        await self._service.purge_note(note_id)

    # ==================== 事件 ====================

    def events(self) -> Subscription:
        """本窗口的事件订阅（首次调用时创建）"""
        if self._subscription is None or self._subscription.closed:
            self._subscription = self._manager.hub.subscribe(self.name)
        return self._subscription

    # ==================== 自动保存 ====================

    @property
    def autosaver(self) -> Optional[AutoSaver]:
        return self._autosaver

    def start_autosave(self, interval: Optional[float] = None) -> AutoSaver:
        """
        启动自动保存（绑定当前 Service）

        已停止的（例如存储目录切换后）会被替换为新任务。
        """
        if self._autosaver is not None and not self._autosaver.stopped:
            return self._autosaver
        saver = AutoSaver(
            self._service,
            interval=interval if interval is not None else self._manager.auto_save_interval,
            name=self.name,
        )
        self._manager.track(saver)
        saver.start()
        self._autosaver = saver
        return saver

    async def set_draft(self, note_id: str, title: str, content: str) -> None:
        saver = self.start_autosave()
        await saver.set_draft(note_id, title, content)

    async def stop_autosave(self, flush: bool = True) -> None:
        saver, self._autosaver = self._autosaver, None
        if saver is None:
            return
        self._manager.untrack(saver)
        await saver.stop(flush=flush)

    # ==================== 关闭 ====================

    async def close(self) -> None:
        """关闭窗口：保存草稿、停止自动保存、取消订阅"""
        if self._closed:
            return
        try:
            await self.stop_autosave(flush=True)
        except ApplicationError as e:
            logger.error(f"surface_draft_lost: {self.name}, {e.code}: {e.message}")
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        self._closed = True
        logger.debug(f"surface_closed: {self.name}")
