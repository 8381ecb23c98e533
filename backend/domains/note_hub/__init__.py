"""
便利贴笔记领域模块

核心功能：
- 笔记的创建、编辑、隐藏、置顶、删除（回收站）与恢复
- 标题/内容搜索，附带匹配上下文
- 本地 JSON 文件持久化：原子写入、损坏文件保留、崩溃后一致
- 变更通知：每个窗口订阅，收到 note_changed 后重新获取
- 存储目录切换与窗口自动保存
"""

from .core.models import Note
from .core.store import NoteStore
from .services.events import NotificationHub
from .services.note_service import NoteService
from .services.root_manager import RootLifecycleManager
from .services.surface import SurfaceSession

__all__ = [
    'Note',
    'NoteStore',
    'NotificationHub',
    'NoteService',
    'RootLifecycleManager',
    'SurfaceSession',
]
