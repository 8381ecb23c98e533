"""WebSocket endpoints for real-time updates.

/ws/notes: 每个连接对应一个窗口会话
- 服务端推送 note_changed / notes_invalidated 事件（收到后重新获取笔记）
- 客户端发送 {"type": "draft", "note_id", "title", "content"} 更新本连接的自动保存草稿
- 客户端发送 {"type": "close_draft"} 立即保存草稿并停止自动保存
"""

import asyncio
import logging
import uuid
from contextlib import suppress
from typing import Any, Dict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.core.deps import get_root_manager
from domains.core import ApplicationError
from domains.core.logging import bind_request_context, clear_request_context
from domains.note_hub.services import Subscription, SurfaceSession

router = APIRouter()
logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket connections."""

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}

    async def connect(self, connection_id: str, websocket: WebSocket):
        """Accept and register a new connection."""
        await websocket.accept()
        self.active_connections[connection_id] = websocket
        logger.info(f"WebSocket connected: {connection_id}")

    def disconnect(self, connection_id: str):
        """Remove a connection."""
        if self.active_connections.pop(connection_id, None) is not None:
            logger.info(f"WebSocket disconnected: {connection_id}")

    async def send_json(self, connection_id: str, data: dict) -> bool:
        """Send JSON data to a specific connection."""
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            return False
        try:
            await websocket.send_json(data)
            return True
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.error(f"Error sending to {connection_id}: {e}")
            self.disconnect(connection_id)
            return False


manager = ConnectionManager()


async def _forward_events(connection_id: str, subscription: Subscription) -> None:
    """
    把订阅到的事件按顺序推送给客户端

    积压溢出时订阅不会结束，客户端收到不带 root 的 notes_invalidated 后全量刷新。
    """
    async for event in subscription:
        if not await manager.send_json(connection_id, event.to_dict()):
            break


def _error_message(code: str, message: str) -> dict[str, Any]:
    return {"type": "error", "code": code, "error": message}


async def _handle_message(session: SurfaceSession, message: Any) -> dict[str, Any]:
    """处理客户端消息，返回应答"""
    if not isinstance(message, dict):
        return _error_message("VALIDATION_ERROR", "message must be a JSON object")

    message_type = message.get("type")

    if message_type == "draft":
        note_id = message.get("note_id")
        title = message.get("title")
        content = message.get("content")
        if not all(isinstance(v, str) for v in (note_id, title, content)):
            return _error_message("VALIDATION_ERROR", "draft requires string note_id, title and content")
        await session.set_draft(note_id, title, content)
        return {"type": "draft_accepted", "note_id": note_id}

    if message_type == "close_draft":
        saver = session.autosaver
        dirty = saver.dirty if saver is not None else False
        await session.stop_autosave(flush=True)
        return {"type": "draft_closed", "saved": dirty}

    if message_type == "ping":
        return {"type": "pong"}

    return _error_message("VALIDATION_ERROR", f"unknown message type: {message_type!r}")


@router.websocket("/notes")
async def notes_channel(websocket: WebSocket):
    """
    笔记变更推送 + 草稿自动保存

    连接建立后先发送 {"type": "connected", "surface_id", "root"}。
    """
    root_manager = get_root_manager()
    connection_id = f"surface_{uuid.uuid4().hex[:8]}"
    session = SurfaceSession(root_manager, name=connection_id)
    subscription = session.events()

    await manager.connect(connection_id, websocket)
    await manager.send_json(
        connection_id,
        {"type": "connected", "surface_id": connection_id, "root": str(root_manager.root)},
    )
    forward_task = asyncio.create_task(_forward_events(connection_id, subscription))

    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await manager.send_json(connection_id, _error_message("VALIDATION_ERROR", "invalid JSON"))
                continue

            bind_request_context(uuid.uuid4().hex[:8], surface_id=connection_id)
            try:
                reply = await _handle_message(session, message)
            except ApplicationError as e:
                logger.warning(f"WebSocket request failed: {connection_id}: [{e.code}] {e.message}")
                reply = _error_message(e.code, e.message)
            finally:
                clear_request_context()
            await manager.send_json(connection_id, reply)

    except WebSocketDisconnect:
        pass
    finally:
        forward_task.cancel()
        with suppress(asyncio.CancelledError):
            await forward_task
        await session.close()
        manager.disconnect(connection_id)
