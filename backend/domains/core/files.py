"""
文件读写工具

提供 JSON 文件的读取与原子写入：
写入临时文件 + 原子重命名，确保写入过程中断不会损坏目标文件。
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def ensure_dir(path: Path) -> None:
    """确保目录存在"""
    path.mkdir(parents=True, exist_ok=True)


def read_json(filepath: Path) -> Any:
    """读取 JSON 文件"""
    with open(filepath, encoding='utf-8') as f:
        return json.load(f)


def write_json_atomic(filepath: Path, data: Any) -> None:
    """
    原子写入 JSON 文件

    临时文件与目标文件位于同一目录，保证 os.replace 是同一文件系统内的原子操作。
    任一步骤失败时清理临时文件并抛出原始异常，目标文件保持原样。
    """
    ensure_dir(filepath.parent)

    fd, tmp_path = tempfile.mkstemp(
        suffix='.json',
        prefix='.tmp_',
        dir=filepath.parent
    )
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, filepath)
    except Exception:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
