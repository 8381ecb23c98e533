"""
用户设置管理

用户设置文件固定存放在应用目录下（<app_dir>/user_config.json），
与笔记存储目录解耦，切换存储目录不会丢失设置。

文件中只记录与默认值不同的键；读取时与默认值合并。
"""

import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from domains.core.exceptions import PersistenceError, ValidationError
from domains.core.files import read_json, write_json_atomic

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "user_config.json"
# 早期版本把设置放在数据目录里
LEGACY_CONFIG_RELPATH = Path("data") / CONFIG_FILENAME

HOTKEY_FIELDS = (
    "hotkey_show",
    "hotkey_hide_all",
    "hotkey_popout",
    "hotkey_close_stickies",
    "hotkey_delete",
)


class UserConfig(BaseModel):
    """用户设置（未知键原样保留）"""
    model_config = ConfigDict(extra="allow")

    data_path: str = Field(default="./data", description="笔记存储目录，相对路径基于应用目录")
    font_family: str = Field(default="LXGW WenKai, Microsoft YaHei, Segoe UI, sans-serif")
    font_size: int = Field(default=16, ge=8, le=72)
    theme: str = Field(default="parchment")
    hotkey_show: str = Field(default="Alt+Shift+S")
    hotkey_hide_all: str = Field(default="Alt+Shift+H")
    hotkey_popout: str = Field(default="Alt+Shift+P")
    hotkey_close_stickies: str = Field(default="Alt+Shift+C")
    hotkey_delete: str = Field(default="Delete")
    window_width: int = Field(default=900, ge=600)
    window_height: int = Field(default=650, ge=400)
    start_minimized: bool = False
    auto_start: bool = False
    minimize_to_tray: bool = True
    editor_line_height: float = Field(default=1.6, gt=0)
    auto_save_interval: int = Field(default=30, ge=1, le=3600, description="自动保存间隔（秒）")
    show_save_reminder: bool = True

    @field_validator("data_path")
    @classmethod
    def validate_data_path(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("data_path must not be empty")
        return v

    @field_validator(*HOTKEY_FIELDS)
    @classmethod
    def validate_hotkey(cls, v: str) -> str:
        if not v or not v.isascii():
            raise ValueError("hotkey must be a non-empty ASCII string")
        return v


DEFAULT_CONFIG = UserConfig()


def non_default_values(config: UserConfig) -> dict[str, Any]:
    """只保留与默认值不同的键"""
    defaults = DEFAULT_CONFIG.model_dump()
    return {
        key: value
        for key, value in config.model_dump().items()
        if key not in defaults or defaults[key] != value
    }


class UserConfigManager:
    """
    用户设置管理器

    使用示例:
        manager = UserConfigManager(app_dir)
        data_dir = manager.get_data_dir()
        manager.save_config({"font_size": 18})
    """

    def __init__(self, app_dir: Path | str):
        self.app_dir = Path(app_dir)
        self._config = self._load()

    @property
    def config_path(self) -> Path:
        return self.app_dir / CONFIG_FILENAME

    def _migrate_legacy(self) -> None:
        """设置文件不存在时，尝试从旧位置迁移"""
        legacy = self.app_dir / LEGACY_CONFIG_RELPATH
        if self.config_path.exists() or not legacy.exists():
            return
        try:
            write_json_atomic(self.config_path, read_json(legacy))
            logger.info(f"user_config_migrated: {legacy} -> {self.config_path}")
        except (OSError, ValueError) as e:
            logger.error(f"user_config_migration_failed: {e}")

    def _load(self) -> UserConfig:
        self._migrate_legacy()
        if not self.config_path.exists():
            return UserConfig()

        try:
            raw = read_json(self.config_path)
        except (OSError, ValueError) as e:
            logger.error(f"user_config_load_failed: {self.config_path}, {e}")
            return UserConfig()
        if not isinstance(raw, dict):
            logger.error(f"user_config_load_failed: {self.config_path}, not an object")
            return UserConfig()

        try:
            return UserConfig.model_validate(raw)
        except PydanticValidationError as e:
            # 丢弃非法的键，其余设置保留
            bad_keys = {err["loc"][0] for err in e.errors() if err.get("loc")}
            logger.error(f"user_config_invalid_keys: {sorted(map(str, bad_keys))}")
            cleaned = {k: v for k, v in raw.items() if k not in bad_keys}
            try:
                return UserConfig.model_validate(cleaned)
            except PydanticValidationError:
                return UserConfig()

    def get_config(self) -> UserConfig:
        return self._config.model_copy()

    def get_data_dir(self) -> Path:
        """解析笔记存储目录：绝对路径直接使用，相对路径基于应用目录"""
        data_path = Path(self._config.data_path).expanduser()
        if data_path.is_absolute():
            return data_path
        return (self.app_dir / data_path).resolve()

    def save_config(self, updates: dict[str, Any]) -> UserConfig:
        """
        合并并保存设置

        Raises:
            ValidationError: 设置值非法，此时不写文件
            PersistenceError: 设置文件写入失败
        """
        merged = {**self._config.model_dump(), **updates}
        try:
            config = UserConfig.model_validate(merged)
        except PydanticValidationError as e:
            raise ValidationError(
                "设置值非法",
                errors=[
                    {"field": ".".join(map(str, err["loc"])), "message": err["msg"]}
                    for err in e.errors()
                ],
            ) from e

        try:
            write_json_atomic(self.config_path, non_default_values(config))
        except OSError as e:
            raise PersistenceError(str(self.config_path), "设置保存失败", cause=e) from e
        self._config = config
        logger.info(f"user_config_saved: keys={sorted(updates)}")
        return self.get_config()

    def reset_config(self) -> UserConfig:
        """
        恢复默认设置并删除设置文件

        Raises:
            PersistenceError: 设置文件删除失败，此时内存中的设置保持不变
        """
        try:
            self.config_path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(str(self.config_path), "设置重置失败", cause=e) from e
        self._config = UserConfig()
        logger.info("user_config_reset")
        return self.get_config()
