"""
服务生命周期管理

应用级服务（用户设置、通知中心、存储目录管理器）集中在这里注册:
首次 get 时按依赖顺序创建，关闭时按创建的逆序释放。
笔记 Store 不在这里注册，它随存储目录切换而重建，由 root_manager 持有。

使用示例:
    registry = register_core_services(app_dir)
    manager = registry.get("root_manager")

    # 应用关闭时
    await registry.shutdown()
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class ServiceDefinition:
    """注册表中的一个服务"""
    name: str
    factory: Callable[[], Any]
    dependencies: list[str] = field(default_factory=list)
    close: Callable[[Any], None] | None = None
    shutdown: Callable[[Any], Awaitable[None]] | None = None
    instance: Any | None = None


class ServiceRegistry:
    """
    服务注册表

    - get: 延迟创建，先创建依赖
    - shutdown: 异步关闭（应用 lifespan 结束时），没有异步关闭函数的服务走同步关闭
    - reset_all: 同步关闭（测试之间重置全局注册表时）
    """

    def __init__(self):
        self._definitions: dict[str, ServiceDefinition] = {}
        self._created: list[str] = []

    def register(
        self,
        name: str,
        factory: Callable[[], Any],
        dependencies: list[str] | None = None,
        close: Callable[[Any], None] | None = None,
        shutdown: Callable[[Any], Awaitable[None]] | None = None,
    ) -> "ServiceRegistry":
        """
        注册服务

        Args:
            name: 服务名称
            factory: 无参工厂函数
            dependencies: 创建前需要先创建的服务
            close: 同步关闭函数（接收服务实例）
            shutdown: 异步关闭函数（接收服务实例）
        """
        if name in self._definitions:
            logger.warning(f"服务 {name} 已注册，将被覆盖")
        self._definitions[name] = ServiceDefinition(
            name=name,
            factory=factory,
            dependencies=list(dependencies or []),
            close=close,
            shutdown=shutdown,
        )
        return self

    def get(self, name: str) -> Any:
        """
        获取服务实例，首次访问时创建

        Raises:
            KeyError: 服务未注册
        """
        definition = self._definitions.get(name)
        if definition is None:
            raise KeyError(f"服务未注册: {name}")
        if definition.instance is not None:
            return definition.instance

        for dependency in definition.dependencies:
            self.get(dependency)
        try:
            definition.instance = definition.factory()
        except Exception as e:
            logger.error(f"服务 {name} 初始化失败: {e}")
            raise
        self._created.append(name)
        logger.debug(f"服务 {name} 已初始化")
        return definition.instance

    @property
    def initialized_services(self) -> list[str]:
        """已创建的服务（按创建顺序）"""
        return list(self._created)

    def _take_created(self) -> list[tuple[ServiceDefinition, Any]]:
        """按创建的逆序取出已创建的实例，并把它们标记为未创建"""
        taken = []
        for name in reversed(self._created):
            definition = self._definitions[name]
            taken.append((definition, definition.instance))
            definition.instance = None
        self._created.clear()
        return taken

    def reset_all(self) -> None:
        """同步关闭所有已创建的服务"""
        for definition, instance in self._take_created():
            if definition.close is None:
                continue
            try:
                definition.close(instance)
            except Exception as e:
                logger.warning(f"服务 {definition.name} 关闭失败: {e}")

    async def shutdown(self) -> None:
        """异步关闭所有已创建的服务，单个服务关闭失败不影响其他服务"""
        logger.info("开始关闭所有服务...")
        for definition, instance in self._take_created():
            try:
                if definition.shutdown is not None:
                    await definition.shutdown(instance)
                elif definition.close is not None:
                    definition.close(instance)
            except Exception as e:
                logger.warning(f"服务 {definition.name} 关闭失败: {e}")
                continue
            logger.debug(f"服务 {definition.name} 已关闭")
        logger.info("所有服务已关闭")


# ==================== 全局注册表 ====================

_registry: ServiceRegistry | None = None


def get_service_registry() -> ServiceRegistry:
    """获取全局服务注册表"""
    global _registry
    if _registry is None:
        _registry = ServiceRegistry()
    return _registry


def reset_service_registry() -> None:
    """重置全局服务注册表（用于测试）"""
    global _registry
    if _registry is not None:
        _registry.reset_all()
    _registry = ServiceRegistry()


# ==================== 服务注册辅助函数 ====================

def register_core_services(
    app_dir: Path | str,
    registry: ServiceRegistry | None = None,
) -> ServiceRegistry:
    """
    注册核心服务

    在应用启动时调用。使用延迟导入避免循环依赖。

    Args:
        app_dir: 应用目录（用户设置文件所在目录，相对 data_path 的基准）
        registry: 目标注册表，默认使用全局注册表
    """
    registry = registry or get_service_registry()

    def _create_user_config():
        from domains.settings_hub import UserConfigManager
        return UserConfigManager(app_dir)

    def _create_notification_hub():
        from domains.note_hub.services import NotificationHub
        return NotificationHub()

    def _create_root_manager():
        from domains.note_hub.services import RootLifecycleManager
        manager = RootLifecycleManager(
            registry.get("user_config"),
            registry.get("notification_hub"),
        )
        manager.start()
        return manager

    registry.register("user_config", _create_user_config)

    registry.register(
        "notification_hub",
        _create_notification_hub,
        close=lambda hub: hub.close(),
    )

    registry.register(
        "root_manager",
        _create_root_manager,
        dependencies=["user_config", "notification_hub"],
        close=lambda m: m.close(),
        shutdown=lambda m: m.shutdown(),
    )

    logger.info("已注册核心服务: user_config, notification_hub, root_manager")
    return registry


# ==================== 导出 ====================

__all__ = [
    "ServiceRegistry",
    "ServiceDefinition",
    "get_service_registry",
    "reset_service_registry",
    "register_core_services",
]
