"""
Settings Hub - 用户设置

设置文件位于应用目录，记录笔记存储目录、字体、主题、快捷键、自动保存间隔等。
"""

from .config import (
    CONFIG_FILENAME,
    DEFAULT_CONFIG,
    UserConfig,
    UserConfigManager,
    non_default_values,
)

__all__ = [
    'CONFIG_FILENAME',
    'DEFAULT_CONFIG',
    'UserConfig',
    'UserConfigManager',
    'non_default_values',
]
