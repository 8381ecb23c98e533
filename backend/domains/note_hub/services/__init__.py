"""
服务层：业务逻辑、事件通知、存储目录生命周期、窗口会话与自动保存
"""

from .autosave import AutoSaver, Draft
from .events import ChangeAction, EventType, NoteEvent, NotificationHub, Subscription
from .note_service import NoteService
from .root_manager import RootLifecycleManager
from .surface import SurfaceSession

__all__ = [
    'AutoSaver',
    'Draft',
    'ChangeAction',
    'EventType',
    'NoteEvent',
    'NotificationHub',
    'Subscription',
    'NoteService',
    'RootLifecycleManager',
    'SurfaceSession',
]
