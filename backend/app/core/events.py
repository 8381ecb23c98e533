"""Application lifecycle event handlers.

使用 ServiceRegistry 统一管理生命周期。
"""

from typing import Callable

from domains.core import get_service_registry, register_core_services
from domains.core.logging import get_logger

from app.core.config import Settings

logger = get_logger(__name__)


def create_start_handler(settings: Settings) -> Callable:
    """Create startup event handler.

    存储目录打不开（无权限、被其他进程占用、损坏文件无法保留）时启动失败，
    磁盘上的数据保持原样。
    """

    async def start_app() -> None:
        logger.info("api_starting", component="api", app_dir=str(settings.APP_DIR))

        registry = register_core_services(settings.APP_DIR)
        try:
            manager = registry.get("root_manager")
        except Exception as e:
            logger.error("service_initialization_error", component="registry", error=str(e))
            raise

        stats = await manager.service.get_stats()
        logger.info(
            "note_store_initialized",
            component="note_store",
            root=stats["root"],
            active=stats["active"],
            trashed=stats["trashed"],
        )
        logger.info(
            "services_initialized",
            component="registry",
            services=registry.initialized_services,
        )
        logger.info("api_started", component="api", status="success")

    return start_app


def create_stop_handler() -> Callable:
    """Create shutdown event handler."""

    async def stop_app() -> None:
        logger.info("api_stopping", component="api")

        # 使用 ServiceRegistry 统一关闭所有服务（自动保存草稿在这里落盘）
        await get_service_registry().shutdown()

        logger.info("api_stopped", component="api", status="success")

    return stop_app
