"""User settings schemas."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SettingsUpdate(BaseModel):
    """User settings update request.

    只包含需要修改的键；取值的校验由 domains.settings_hub.UserConfig 完成。
    """

    model_config = ConfigDict(extra="allow")

    def to_updates(self) -> dict[str, Any]:
        return self.model_dump()


class SettingsResponse(BaseModel):
    """Current settings plus the resolved storage directory."""

    config: dict[str, Any]
    data_dir: str = Field(..., description="解析后的笔记存储目录")
