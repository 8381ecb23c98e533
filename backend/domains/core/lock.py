"""
文件锁机制

Store 打开期间持有 <root>/.locks/notes.lock，防止两个进程同时写同一个存储目录。
"""

import fcntl
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class FileLock:
    """
    基于 fcntl.flock 的非阻塞进程锁

    锁绑定在打开的文件描述符上，同一进程内两个 FileLock 实例也会互斥。
    """

    def __init__(self, lock_file: Path):
        self.lock_file = lock_file
        self._fd: int | None = None

    def acquire(self) -> bool:
        """尝试获取锁，已被占用时立即返回 False"""
        self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(self.lock_file), os.O_CREAT | os.O_RDWR)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            return False
        self._fd = fd
        return True

    def release(self) -> None:
        """释放锁"""
        if self._fd is not None:
            try:
                fcntl.flock(self._fd, fcntl.LOCK_UN)
                os.close(self._fd)
            except OSError as e:
                logger.warning(f"release_lock_error: {self.lock_file}, {e}")
            finally:
                self._fd = None


def try_file_lock(lock_file: Path) -> FileLock | None:
    """
    尝试获取文件锁（非阻塞）

    如果锁已被占用，立即返回 None。

    Example:
        lock = try_file_lock(root / ".locks" / "notes.lock")
        if lock:
            try:
                ...
            finally:
                lock.release()
    """
    lock = FileLock(lock_file)
    if lock.acquire():
        return lock
    return None
