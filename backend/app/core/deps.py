"""Dependency injection for FastAPI routes.

服务实例由 ServiceRegistry 管理（在 lifespan 启动时注册）。
笔记 Service 每次请求都从 root_manager 取当前值，存储目录切换后自动指向新目录。
"""

from typing import TYPE_CHECKING

from domains.core import get_service_registry

if TYPE_CHECKING:
    from domains.note_hub.services import NoteService, NotificationHub, RootLifecycleManager
    from domains.settings_hub import UserConfigManager


# ============================================================================
# Service getters - 使用 ServiceRegistry
# ============================================================================

def get_root_manager() -> "RootLifecycleManager":
    """Get RootLifecycleManager singleton instance."""
    return get_service_registry().get("root_manager")


def get_note_service() -> "NoteService":
    """Get the NoteService bound to the current storage root."""
    return get_root_manager().service


def get_notification_hub() -> "NotificationHub":
    """Get NotificationHub singleton instance."""
    return get_service_registry().get("notification_hub")


def get_user_config() -> "UserConfigManager":
    """Get UserConfigManager singleton instance."""
    return get_service_registry().get("user_config")
