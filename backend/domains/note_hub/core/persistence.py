"""
笔记持久化层 - 本地 JSON 文件

存储目录结构:
    <root>/notes.json          活动笔记集合
    <root>/trash/notes.json    回收站
    <root>/.recovery/          无法解析的文件原样保留在这里
    <root>/.locks/notes.lock   Store 打开期间持有的进程锁

每次写入都是整份集合的原子写（临时文件 + os.replace）。
"""

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from domains.core.exceptions import (
    CorruptStoreError,
    PersistenceError,
    StorageUnavailableError,
    StoreLockedError,
)
from domains.core.files import ensure_dir, read_json, write_json_atomic
from domains.core.lock import FileLock, try_file_lock

from .models import Note

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

NOTES_FILENAME = "notes.json"
TRASH_DIRNAME = "trash"
RECOVERY_DIRNAME = ".recovery"
LOCK_RELPATH = Path(".locks") / "notes.lock"


class CollectionFormatError(ValueError):
    """集合文件内容不符合格式"""


def decode_collection(raw: Any) -> list[Note]:
    """
    解析集合文件内容

    支持两种格式:
    - {"version": 1, "notes": [...]}
    - 早期版本直接保存的笔记数组 [...]
    """
    if isinstance(raw, list):
        records = raw
    elif isinstance(raw, dict):
        version = raw.get('version', FORMAT_VERSION)
        if version != FORMAT_VERSION:
            raise CollectionFormatError(f"unsupported version: {version!r}")
        records = raw.get('notes')
        if not isinstance(records, list):
            raise CollectionFormatError("'notes' must be a list")
    else:
        raise CollectionFormatError(f"unexpected top-level type: {type(raw).__name__}")

    notes = []
    seen = set()
    for record in records:
        try:
            note = Note.from_dict(record)
        except (KeyError, TypeError, ValueError) as e:
            raise CollectionFormatError(f"invalid note record: {e}") from e
        if note.id in seen:
            raise CollectionFormatError(f"duplicate note id: {note.id}")
        seen.add(note.id)
        notes.append(note)
    return notes


def encode_collection(notes) -> dict[str, Any]:
    return {
        'version': FORMAT_VERSION,
        'notes': [note.to_dict() for note in notes],
    }


class NoteFileStorage:
    """
    笔记文件存储

    负责路径解析、进程锁、集合文件的读取（含损坏恢复）与原子写入。
    不持有任何笔记状态。
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.notes_path = self.root / NOTES_FILENAME
        self.trash_path = self.root / TRASH_DIRNAME / NOTES_FILENAME
        self.recovery_dir = self.root / RECOVERY_DIRNAME
        self.lock_path = self.root / LOCK_RELPATH
        self._lock: FileLock | None = None

    # ==================== 打开 / 关闭 ====================

    def open(self) -> None:
        """创建存储目录并获取进程锁"""
        try:
            ensure_dir(self.root)
            lock = try_file_lock(self.lock_path)
        except OSError as e:
            raise StorageUnavailableError(str(self.root), str(e), cause=e) from e
        if lock is None:
            raise StoreLockedError(str(self.root))
        self._lock = lock

    def close(self) -> None:
        if self._lock is not None:
            self._lock.release()
            self._lock = None

    # ==================== 读取 ====================

    def load_active(self) -> tuple[list[Note], Path | None]:
        """读取活动笔记，返回 (笔记列表, 损坏文件的保留路径)"""
        return self._load(self.notes_path)

    def load_trash(self) -> tuple[list[Note], Path | None]:
        """读取回收站，返回 (笔记列表, 损坏文件的保留路径)"""
        return self._load(self.trash_path)

    def _load(self, path: Path) -> tuple[list[Note], Path | None]:
        if not path.exists():
            return [], None

        try:
            raw = read_json(path)
            return decode_collection(raw), None
        except (ValueError, UnicodeDecodeError) as e:
            # json.JSONDecodeError / CollectionFormatError 都是 ValueError
            logger.warning(f"corrupt_note_file: {path}, {e}")
            recovered = self._preserve(path, e)
            return [], recovered
        except OSError as e:
            raise StorageUnavailableError(str(path), str(e), cause=e) from e

    def _preserve(self, path: Path, reason: Exception) -> Path:
        """把无法解析的文件原样复制到恢复目录"""
        stamp = datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%S%fZ')
        relative = path.relative_to(self.root)
        name = '_'.join(relative.parts)
        target = self.recovery_dir / f"{name}.corrupt-{stamp}"
        try:
            ensure_dir(self.recovery_dir)
            counter = 1
            while target.exists():
                target = self.recovery_dir / f"{name}.corrupt-{stamp}-{counter}"
                counter += 1
            shutil.copy2(path, target)
        except OSError as e:
            raise CorruptStoreError(
                str(path), f"无法保留到恢复目录: {e}", cause=reason
            ) from e
        logger.warning(f"corrupt_note_file_preserved: {path} -> {target}")
        return target

    # ==================== 写入 ====================

    def save_active(self, notes) -> None:
        self._save(self.notes_path, notes)

    def save_trash(self, notes) -> None:
        self._save(self.trash_path, notes)

    def _save(self, path: Path, notes) -> None:
        try:
            write_json_atomic(path, encode_collection(notes))
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"note_file_write_failed: {path}, {e}")
            raise PersistenceError(str(path), str(e), cause=e) from e
