"""
存储目录生命周期管理

持有当前存储目录对应的 NoteStore / NoteService，负责在用户修改 data_path
时重建它们。切换目录不复制任何数据。

切换顺序:
1. 先把绑定旧存储的自动保存草稿落盘并停止任务
2. 持有旧 Service 的 write_lock，等待进行中的修改完成
3. 打开新目录（正常加载，含损坏恢复）；失败时旧存储保持可用
4. 关闭旧存储（不写任何数据），替换为新 Service
5. 发布 notes_invalidated，窗口全量刷新
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

from domains.core.exceptions import ApplicationError, StoreClosedError
from domains.settings_hub import UserConfig, UserConfigManager

from ..core.store import NoteStore
from .autosave import AutoSaver
from .events import NotificationHub
from .note_service import NoteService

logger = logging.getLogger(__name__)


class RootLifecycleManager:
    """
    存储目录生命周期管理器

    使用示例:
        manager = RootLifecycleManager(config_manager, hub)
        manager.start()
        notes = await manager.service.get_notes()
        await manager.apply_settings({"data_path": "/mnt/notes"})
    """

    def __init__(self, config_manager: UserConfigManager, hub: NotificationHub):
        self._config_manager = config_manager
        self.hub = hub
        self._service: Optional[NoteService] = None
        self._autosavers: set[AutoSaver] = set()
        self._switch_lock = asyncio.Lock()
        self._shut_down = False

    @property
    def config_manager(self) -> UserConfigManager:
        return self._config_manager

    @property
    def auto_save_interval(self) -> float:
        return float(self._config_manager.get_config().auto_save_interval)

    @property
    def started(self) -> bool:
        return self._service is not None

    def start(self) -> NoteService:
        """
        打开配置中的存储目录（已打开时直接返回）

        Raises:
            StoreClosedError: 已经 shutdown / close，不再重新打开
        """
        if self._shut_down:
            raise StoreClosedError(str(self._config_manager.get_data_dir()))
        if self._service is None:
            self._service = self._open(self._config_manager.get_data_dir())
        return self._service

    @property
    def service(self) -> NoteService:
        """当前 Service，每次调用时取值，切换目录后即指向新实例"""
        return self.start()

    @property
    def root(self) -> Path:
        return self.service.root

    def _open(self, root: Path) -> NoteService:
        store = NoteStore(root)
        for path in store.recovered_files:
            logger.warning(f"note_file_recovered: {path}")
        return NoteService(store, self.hub)

    # ==================== 自动保存登记 ====================

    def track(self, saver: AutoSaver) -> None:
        self._autosavers.add(saver)

    def untrack(self, saver: AutoSaver) -> None:
        self._autosavers.discard(saver)

    async def _stop_autosavers(self, service: NoteService) -> None:
        for saver in [s for s in self._autosavers if s.service is service]:
            try:
                await saver.stop(flush=True)
            except ApplicationError as e:
                logger.error(f"autosave_flush_failed: {saver.name}, {e.code}: {e.message}")
            self.untrack(saver)

    # ==================== 切换目录 ====================

    async def switch_root(self, new_root: Path | str) -> NoteService:
        """
        切换存储目录

        Raises:
            StorageUnavailableError / StoreLockedError / CorruptStoreError:
                新目录无法打开，此时仍使用旧目录
            StoreClosedError: 已经 shutdown
        """
        new_root = Path(new_root).expanduser().resolve()
        async with self._switch_lock:
            if self._shut_down:
                raise StoreClosedError(str(new_root))
            old = self._service
            if old is not None and old.root.resolve() == new_root:
                return old

            if old is None:
                self._service = await asyncio.to_thread(self._open, new_root)
            else:
                await self._stop_autosavers(old)
                async with old.write_lock:
                    new_service = await asyncio.to_thread(self._open, new_root)
                    old.close()
                    self._service = new_service

            logger.info(f"storage_root_switched: {old.root if old else None} -> {new_root}")
            self.hub.invalidate(str(new_root))
            return self._service

    async def apply_settings(self, updates: dict[str, Any]) -> UserConfig:
        """
        保存用户设置，数据目录变化时切换存储目录

        新目录打开失败时回滚 data_path 并抛出原异常。
        """
        previous_path = self._config_manager.get_config().data_path
        previous_dir = self._config_manager.get_data_dir()
        config = await asyncio.to_thread(self._config_manager.save_config, updates)

        for saver in self._autosavers:
            saver.interval = float(config.auto_save_interval)

        new_dir = self._config_manager.get_data_dir()
        if new_dir != previous_dir:
            try:
                await self.switch_root(new_dir)
            except ApplicationError:
                await asyncio.to_thread(
                    self._config_manager.save_config, {"data_path": previous_path}
                )
                raise
        return config

    async def reset_settings(self) -> UserConfig:
        """
        恢复默认设置（数据目录随之变化时同样切换）

        默认目录打开失败时恢复之前的全部设置并抛出原异常。
        """
        previous = self._config_manager.get_config()
        previous_dir = self._config_manager.get_data_dir()
        config = await asyncio.to_thread(self._config_manager.reset_config)

        new_dir = self._config_manager.get_data_dir()
        if new_dir != previous_dir:
            try:
                await self.switch_root(new_dir)
            except ApplicationError:
                await asyncio.to_thread(
                    self._config_manager.save_config, previous.model_dump()
                )
                raise

        for saver in self._autosavers:
            saver.interval = float(config.auto_save_interval)
        return config

    # ==================== 关闭 ====================

    async def shutdown(self) -> None:
        """停止所有自动保存并关闭存储"""
        async with self._switch_lock:
            self._shut_down = True
            service, self._service = self._service, None
            if service is not None:
                await self._stop_autosavers(service)
                async with service.write_lock:
                    service.close()
            for saver in list(self._autosavers):
                await saver.stop()
            self._autosavers.clear()
        logger.info("root_manager_shutdown")

    def close(self) -> None:
        """同步关闭存储，不等待自动保存（注册表同步重置时使用）"""
        self._shut_down = True
        service, self._service = self._service, None
        if service is not None:
            service.close()
        self._autosavers.clear()
