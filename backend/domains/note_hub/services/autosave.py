"""
自动保存

每个窗口（会话）持有一个 AutoSaver：窗口把编辑中的标题和内容作为草稿交给它，
它按固定间隔检查草稿是否与上次保存的状态不同，不同才调用 update_note。

- 停止时取消后台任务；正在进行的写入不会被中断
- 存储目录切换时由 RootLifecycleManager 停止（先落盘草稿）
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from domains.core.exceptions import ApplicationError, NoteNotFoundError, StoreClosedError

from ..core.models import Note
from .note_service import NoteService

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 30.0


@dataclass(frozen=True)
class Draft:
    """编辑中的笔记内容"""
    note_id: str
    title: str
    content: str

    @classmethod
    def from_note(cls, note: Note) -> "Draft":
        return cls(note_id=note.id, title=note.title, content=note.content)


class AutoSaver:
    """
    单个窗口的自动保存任务

    使用示例:
        saver = AutoSaver(service, interval=30, name="sticky-3f2a")
        saver.start()
        await saver.set_draft(note_id, title, content)
        ...
        await saver.stop(flush=True)
    """

    def __init__(self, service: NoteService, interval: float = DEFAULT_INTERVAL, name: str = ""):
        self._service = service
        self.interval = interval
        self.name = name or "autosave"
        self._draft: Optional[Draft] = None
        self._saved: Optional[Draft] = None
        self._task: Optional[asyncio.Task] = None
        self._stopped = False
        self.save_count = 0

    @property
    def service(self) -> NoteService:
        return self._service

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def draft(self) -> Optional[Draft]:
        return self._draft

    @property
    def dirty(self) -> bool:
        """草稿与上次保存的状态不同"""
        return self._draft is not None and self._draft != self._saved

    def start(self) -> None:
        if self._stopped:
            raise RuntimeError(f"autosaver {self.name} already stopped")
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"autosave-{self.name}")
            logger.debug(f"autosave_started: {self.name}, interval={self.interval}s")

    def load(self, note: Note) -> None:
        """以存储中的笔记作为已保存基线（窗口打开笔记时调用）"""
        self._draft = self._saved = Draft.from_note(note)

    async def set_draft(self, note_id: str, title: str, content: str) -> None:
        """
        更新草稿

        切换到另一条笔记时，先把上一条笔记未保存的草稿落盘。
        """
        if self._stopped:
            raise RuntimeError(f"autosaver {self.name} already stopped")
        if self._draft is not None and self._draft.note_id != note_id:
            await self.flush()
            self._saved = None
        self._draft = Draft(note_id=note_id, title=title, content=content)

    async def flush(self) -> bool:
        """
        立即保存草稿

        Returns:
            是否发生了写入
        """
        draft = self._draft
        if draft is None or draft == self._saved:
            return False
        await self._service.update_note(draft.note_id, title=draft.title, content=draft.content)
        self._saved = draft
        self.save_count += 1
        logger.debug(f"autosave_flushed: {self.name}, note={draft.note_id}")
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                # 写入一旦开始就不随任务取消而中断
                await asyncio.shield(self.flush())
            except NoteNotFoundError as e:
                logger.warning(f"autosave_note_missing: {self.name}, {e.message}")
                self._draft = self._saved = None
            except StoreClosedError:
                logger.info(f"autosave_store_closed: {self.name}")
                return
            except ApplicationError as e:
                # 下个周期重试
                logger.error(f"autosave_failed: {self.name}, {e.code}: {e.message}")

    async def stop(self, flush: bool = False) -> None:
        """
        停止自动保存

        Args:
            flush: 停止后是否立即保存未落盘的草稿
        """
        self._stopped = True
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if flush:
            await self.flush()
        logger.debug(f"autosave_stopped: {self.name}")
