"""
笔记服务层

窗口会话与 HTTP 路由访问笔记的唯一入口:
- 修改操作通过 write_lock 串行执行，阻塞的文件写入放到线程池，不阻塞事件循环
- 修改成功后在同一个串行区内发布 note_changed，保证同一笔记的事件顺序
- 写入一旦开始，调用方被取消也会写完并发布事件，write_lock 直到写入结束才释放
- 读取和搜索直接读取 Store 的当前快照
"""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from ..core.models import Note
from ..core.search import SearchHit
from ..core.store import NoteStore
from .events import ChangeAction, NotificationHub

logger = logging.getLogger(__name__)

T = TypeVar("T")

# unhide_all 超过这个数量时改为发布一次列表刷新，避免事件洪泛
BULK_EVENT_LIMIT = 100


class NoteService:
    """
    笔记服务层

    封装笔记相关的业务逻辑，代理存储层操作并负责事件发布。
    一个 NoteService 绑定一个 NoteStore，存储目录切换时一起被替换。
    """

    def __init__(self, store: NoteStore, hub: NotificationHub):
        """
        初始化服务

        Args:
            store: 笔记存储层实例
            hub: 通知中心（跨存储目录共享）
        """
        self._store = store
        self._hub = hub
        self.write_lock = asyncio.Lock()

    @property
    def store(self) -> NoteStore:
        return self._store

    @property
    def root(self) -> Path:
        return self._store.root

    # ==================== 查询 ====================

    async def get_notes(self, include_hidden: bool = False) -> list[Note]:
        """获取笔记列表"""
        return self._store.list_notes(include_hidden)

    async def get_note(self, note_id: str) -> Note:
        """获取笔记详情"""
        return self._store.get(note_id)

    async def search_notes(self, query: str, include_hidden: bool = False) -> list[SearchHit]:
        """搜索笔记"""
        return self._store.search(query, include_hidden)

    async def list_trash(self) -> list[Note]:
        """回收站列表"""
        return self._store.list_trash()

    async def get_stats(self) -> dict[str, Any]:
        return {"root": str(self.root), **self._store.count()}

    # ==================== 修改 ====================

    async def _mutate(self, operation: Callable[[], T], publish: Callable[[T], None]) -> T:
        """
        在串行区内执行一次 Store 修改并发布事件

        等待 write_lock 期间可以被取消；拿到锁以后写入和发布在独立任务里完成，
        调用方被取消时该任务照常执行到底，并在结束时释放锁。
        """
        await self.write_lock.acquire()
        task = asyncio.create_task(self._apply(operation, publish))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            task.add_done_callback(self._log_detached_failure)
            raise

    async def _apply(self, operation: Callable[[], T], publish: Callable[[T], None]) -> T:
        try:
            result = await asyncio.to_thread(operation)
            publish(result)
            return result
        finally:
            self.write_lock.release()

    @staticmethod
    def _log_detached_failure(task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"note_write_failed_after_cancel: {task.exception()}")

    async def create_note(self, title: str, content: str = "") -> Note:
        """创建笔记"""
        return await self._mutate(
            lambda: self._store.create(title, content),
            lambda note: self._hub.note_changed(note.id, ChangeAction.CREATED),
        )

    async def update_note(self, note_id: str, **fields: Any) -> Note:
        """
        更新笔记字段

        字段都没有变化时不写盘，也不发布事件。
        两个窗口先后提交同一笔记时，后到的整体覆盖先到的（不做字段级合并）。
        """
        def update() -> tuple[Note, Note]:
            before = self._store.get(note_id)
            return before, self._store.update(note_id, **fields)

        def publish(change: tuple[Note, Note]) -> None:
            before, after = change
            if after != before:
                self._hub.note_changed(note_id, self._classify(before, after))

        _, note = await self._mutate(update, publish)
        return note

    @staticmethod
    def _classify(before: Note, after: Note) -> ChangeAction:
        if before.is_hidden != after.is_hidden:
            return ChangeAction.HIDDEN
        if before.is_pinned != after.is_pinned:
            return ChangeAction.PINNED
        return ChangeAction.UPDATED

    async def delete_note(self, note_id: str) -> Note:
        """删除笔记（移入回收站）"""
        return await self._mutate(
            lambda: self._store.delete(note_id),
            lambda _: self._hub.note_changed(note_id, ChangeAction.DELETED),
        )

    async def toggle_hidden(self, note_id: str) -> Note:
        """切换隐藏状态"""
        return await self._mutate(
            lambda: self._store.toggle_hidden(note_id),
            lambda _: self._hub.note_changed(note_id, ChangeAction.HIDDEN),
        )

    async def toggle_pinned(self, note_id: str) -> Note:
        """切换置顶状态"""
        return await self._mutate(
            lambda: self._store.toggle_pinned(note_id),
            lambda _: self._hub.note_changed(note_id, ChangeAction.PINNED),
        )

    async def unhide_all(self) -> int:
        """
        取消所有隐藏，返回数量

        数量不超过 BULK_EVENT_LIMIT 时逐条发布 note_changed，否则发布一次 notes_invalidated。
        """
        def publish(ids: list[str]) -> None:
            if len(ids) > BULK_EVENT_LIMIT:
                self._hub.invalidate(str(self.root))
                return
            for note_id in ids:
                self._hub.note_changed(note_id, ChangeAction.HIDDEN)

        ids = await self._mutate(self._store.unhide_all, publish)
        return len(ids)

    async def restore_note(self, note_id: str) -> Note:
        """从回收站恢复"""
        return await self._mutate(
            lambda: self._store.restore(note_id),
            lambda _: self._hub.note_changed(note_id, ChangeAction.RESTORED),
        )

    async def purge_note(self, note_id: str) -> None:
        """从回收站永久删除"""
        await self._mutate(
            lambda: self._store.purge(note_id),
            lambda _: self._hub.note_changed(note_id, ChangeAction.PURGED),
        )

    # ==================== 生命周期 ====================

    def close(self) -> None:
        """关闭存储（调用方需持有 write_lock，确保没有进行中的写入）"""
        self._store.close()
