"""
笔记存储层 - 内存权威集合 + 本地文件持久化

NoteStore 是笔记集合的唯一写入者:
- 所有修改在同一把锁内完成 读取 -> 修改 -> 持久化 -> 切换快照
- 内存状态采用写时复制：修改先构造新的字典，写盘成功后才替换引用，
  写盘失败时旧快照原样保留，调用方收到 PersistenceError
- 读取和搜索只取当前快照的引用，要么看到修改前、要么看到修改后，不会看到中间态

一个 NoteStore 实例绑定一个存储根目录，切换目录时由 RootLifecycleManager
关闭旧实例并创建新实例。
"""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

from domains.core.exceptions import NoteNotFoundError, StoreClosedError

from .models import Note, utc_now
from .persistence import NoteFileStorage
from .search import SearchHit, search_notes, visible_notes
from .validation import clean_content, clean_title, clean_update

logger = logging.getLogger(__name__)


class NoteStore:
    """
    笔记存储层

    提供笔记的创建、查询、更新、删除（移入回收站）、恢复等操作。
    """

    def __init__(self, root: Path | str, storage: NoteFileStorage | None = None):
        """
        打开存储目录并加载笔记

        Args:
            root: 存储根目录
            storage: 文件存储实现（测试时可替换）

        Raises:
            StorageUnavailableError: 目录无法创建或读取
            StoreLockedError: 目录被其他进程占用
            CorruptStoreError: 损坏文件无法保留到恢复目录
        """
        self.root = Path(root)
        self._storage = storage or NoteFileStorage(self.root)
        self._lock = threading.RLock()
        self._closed = False
        self.recovered_files: list[Path] = []

        self._storage.open()
        try:
            self._snapshot = self._load()
        except Exception:
            self._storage.close()
            raise

        logger.info(
            f"note_store_opened: root={self.root}, active={len(self._active)}, "
            f"trashed={len(self._trash)}"
        )

    def _load(self) -> tuple[dict[str, Note], dict[str, Note]]:
        active_notes, recovered = self._storage.load_active()
        if recovered:
            self.recovered_files.append(recovered)
        trash_notes, recovered = self._storage.load_trash()
        if recovered:
            self.recovered_files.append(recovered)

        active = {n.id: n for n in active_notes}
        trash = {}
        for note in trash_notes:
            # 删除/恢复中途崩溃可能导致两边都有同一条笔记，以活动集合为准
            if note.id in active:
                logger.warning(f"note_in_both_active_and_trash: {note.id}, keeping active")
                continue
            if note.deleted_at is None:
                note = note.with_changes(deleted_at=note.updated_at)
            trash[note.id] = note
        return active, trash

    # ==================== 内部工具 ====================

    @property
    def _active(self) -> dict[str, Note]:
        return self._snapshot[0]

    @property
    def _trash(self) -> dict[str, Note]:
        return self._snapshot[1]

    def _ensure_open(self) -> None:
        if self._closed:
            raise StoreClosedError(str(self.root))

    @staticmethod
    def _tick(previous: datetime | None = None) -> datetime:
        """当前时间，且不早于上一次的 updated_at"""
        now = utc_now()
        if previous is not None and previous > now:
            return previous
        return now

    def _commit(
        self,
        active: dict[str, Note] | None = None,
        trash: dict[str, Note] | None = None,
        trash_first: bool = False,
    ) -> None:
        """
        持久化并切换快照

        任一文件写入失败都会抛出 PersistenceError，此时内存快照保持不变。
        """
        order = ('trash', 'active') if trash_first else ('active', 'trash')
        for area in order:
            if area == 'active' and active is not None:
                self._storage.save_active(active.values())
            elif area == 'trash' and trash is not None:
                self._storage.save_trash(trash.values())

        # 两个集合作为一个引用整体替换，读取方不会看到一半新一半旧
        self._snapshot = (
            active if active is not None else self._active,
            trash if trash is not None else self._trash,
        )

    def _require(self, note_id: str) -> Note:
        note = self._active.get(note_id)
        if note is None:
            raise NoteNotFoundError(note_id)
        return note

    # ==================== 查询 ====================

    def get(self, note_id: str) -> Note:
        """获取单个活动笔记"""
        self._ensure_open()
        return self._require(note_id)

    def list_notes(self, include_hidden: bool = False) -> list[Note]:
        """获取笔记列表：置顶优先，再按 updated_at 降序"""
        self._ensure_open()
        return visible_notes(self._active.values(), include_hidden)

    def search(self, query: str, include_hidden: bool = False) -> list[SearchHit]:
        """在当前快照上搜索"""
        self._ensure_open()
        return search_notes(list(self._active.values()), query, include_hidden)

    def list_trash(self) -> list[Note]:
        """回收站笔记，最近删除的在前"""
        self._ensure_open()
        return sorted(self._trash.values(), key=lambda n: n.deleted_at, reverse=True)

    def count(self) -> dict[str, int]:
        self._ensure_open()
        active, trash = self._snapshot
        return {
            "active": len(active),
            "hidden": sum(1 for n in active.values() if n.is_hidden),
            "trashed": len(trash),
        }

    # ==================== 修改 ====================

    def create(self, title: str, content: str = "") -> Note:
        """创建笔记"""
        title = clean_title(title)
        content = clean_content(content)

        with self._lock:
            self._ensure_open()
            now = self._tick()
            note = Note(title=title, content=content, created_at=now, updated_at=now)
            while note.id in self._active or note.id in self._trash:
                note = Note(title=title, content=content, created_at=now, updated_at=now)

            self._commit(active={**self._active, note.id: note})

        logger.info(f"note_created: {note.id}")
        return note

    def update(self, note_id: str, **fields: Any) -> Note:
        """
        部分更新笔记

        只合并传入的字段。所有传入字段都与当前值相同（例如标题和内容都没变）
        时视为空操作：不推进 updated_at，也不写盘。

        Returns:
            更新后的笔记（空操作时返回当前笔记）
        """
        changes = clean_update(fields)

        with self._lock:
            self._ensure_open()
            note = self._require(note_id)

            diff = {k: v for k, v in changes.items() if getattr(note, k) != v}
            if not diff:
                return note

            updated = note.with_changes(updated_at=self._tick(note.updated_at), **diff)
            self._commit(active={**self._active, note_id: updated})

        logger.info(f"note_updated: {note_id}, fields={sorted(diff)}")
        return updated

    def toggle_hidden(self, note_id: str) -> Note:
        """切换隐藏状态"""
        with self._lock:
            self._ensure_open()
            note = self._require(note_id)
            return self.update(note_id, is_hidden=not note.is_hidden)

    def toggle_pinned(self, note_id: str) -> Note:
        """切换置顶状态"""
        with self._lock:
            self._ensure_open()
            note = self._require(note_id)
            return self.update(note_id, is_pinned=not note.is_pinned)

    def unhide_all(self) -> list[str]:
        """
        取消所有隐藏

        Returns:
            被取消隐藏的笔记 ID 列表
        """
        with self._lock:
            self._ensure_open()
            hidden = [n for n in self._active.values() if n.is_hidden]
            if not hidden:
                return []

            active = dict(self._active)
            for note in hidden:
                active[note.id] = note.with_changes(
                    is_hidden=False,
                    updated_at=self._tick(note.updated_at),
                )
            self._commit(active=active)

        ids = [n.id for n in hidden]
        logger.info(f"notes_unhidden: count={len(ids)}")
        return ids

    def delete(self, note_id: str) -> Note:
        """
        删除笔记（移入回收站，可恢复）

        先写回收站再写活动集合，中途崩溃时两边都保留，加载时以活动集合为准。
        """
        with self._lock:
            self._ensure_open()
            note = self._require(note_id)

            trashed = note.with_changes(deleted_at=self._tick())
            active = {k: v for k, v in self._active.items() if k != note_id}
            trash = {**self._trash, note_id: trashed}
            self._commit(active=active, trash=trash, trash_first=True)

        logger.info(f"note_trashed: {note_id}")
        return trashed

    def restore(self, note_id: str) -> Note:
        """
        从回收站恢复笔记

        先写活动集合再写回收站，中途崩溃时同样以活动集合为准。
        """
        with self._lock:
            self._ensure_open()
            trashed = self._trash.get(note_id)
            if trashed is None:
                raise NoteNotFoundError(note_id, area="trash")

            restored = trashed.with_changes(
                deleted_at=None,
                updated_at=self._tick(trashed.updated_at),
            )
            active = {**self._active, note_id: restored}
            trash = {k: v for k, v in self._trash.items() if k != note_id}
            self._commit(active=active, trash=trash)

        logger.info(f"note_restored: {note_id}")
        return restored

    def purge(self, note_id: str) -> None:
        """从回收站永久删除（仅在显式请求时调用）"""
        with self._lock:
            self._ensure_open()
            if note_id not in self._trash:
                raise NoteNotFoundError(note_id, area="trash")
            trash = {k: v for k, v in self._trash.items() if k != note_id}
            self._commit(trash=trash)

        logger.info(f"note_purged: {note_id}")

    # ==================== 生命周期 ====================

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """
        关闭存储

        不写任何数据：每次修改都已同步落盘，内存中不存在未持久化的状态。
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._storage.close()
        logger.info(f"note_store_closed: root={self.root}")
