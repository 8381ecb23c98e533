"""User settings API routes.

修改 data_path 会切换存储目录（不复制数据），所有窗口收到 notes_invalidated 后全量刷新。
"""

from fastapi import APIRouter, Depends

from app.schemas.common import ApiResponse
from app.schemas.settings import SettingsResponse, SettingsUpdate
from app.core.deps import get_root_manager

router = APIRouter()


def _settings_response(manager) -> SettingsResponse:
    config_manager = manager.config_manager
    return SettingsResponse(
        config=config_manager.get_config().model_dump(),
        data_dir=str(config_manager.get_data_dir()),
    )


@router.get("", response_model=ApiResponse[SettingsResponse])
async def get_settings(manager=Depends(get_root_manager)):
    """获取用户设置"""
    return ApiResponse(data=_settings_response(manager))


@router.put("", response_model=ApiResponse[SettingsResponse])
async def save_settings(
    request: SettingsUpdate,
    manager=Depends(get_root_manager),
):
    """保存用户设置（只需提交修改的键）"""
    await manager.apply_settings(request.to_updates())
    return ApiResponse(data=_settings_response(manager), message="设置已保存")


@router.delete("", response_model=ApiResponse[SettingsResponse])
async def reset_settings(manager=Depends(get_root_manager)):
    """恢复默认设置"""
    await manager.reset_settings()
    return ApiResponse(data=_settings_response(manager), message="设置已恢复默认")
