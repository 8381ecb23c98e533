"""
笔记变更通知中心

每个打开的窗口（主窗口、浮动便利贴、WebSocket 连接）订阅一次，
拿到一个独立的 FIFO 队列。Store 修改成功后由 NoteService 在串行区内发布事件，
因此同一条笔记的事件按修改完成的顺序到达每个订阅者。

事件只是"需要刷新"的提示，窗口收到后应重新获取笔记，不应把事件当作权威状态。

内存管理:
- 订阅者长期不消费时队列会堆积，超过 MAX_PENDING_EVENTS 后丢弃积压的事件，
  改为一个不带 root 的 notes_invalidated（重新同步），订阅本身保持有效，
  窗口收到后全量刷新即可
"""

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..core.models import utc_now

logger = logging.getLogger(__name__)

MAX_PENDING_EVENTS = 1000


class EventType(str, Enum):
    """事件类型"""
    NOTE_CHANGED = "note_changed"
    NOTES_INVALIDATED = "notes_invalidated"


class ChangeAction(str, Enum):
    """引起 note_changed 的操作"""
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    HIDDEN = "hidden"
    PINNED = "pinned"
    RESTORED = "restored"
    PURGED = "purged"


@dataclass(frozen=True)
class NoteEvent:
    """变更事件"""
    type: EventType
    note_id: Optional[str] = None
    action: Optional[ChangeAction] = None
    root: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)

    @property
    def requires_list_reload(self) -> bool:
        """删除、可见性变化、目录切换时窗口需要刷新整个列表"""
        if self.type == EventType.NOTES_INVALIDATED:
            return True
        return self.action in (
            ChangeAction.CREATED,
            ChangeAction.DELETED,
            ChangeAction.HIDDEN,
            ChangeAction.RESTORED,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type.value,
            "created_at": self.created_at.isoformat(),
            "reload_list": self.requires_list_reload,
        }
        if self.note_id is not None:
            data["note_id"] = self.note_id
        if self.action is not None:
            data["action"] = self.action.value
        if self.root is not None:
            data["root"] = self.root
        return data


_CLOSED = object()


class Subscription:
    """单个订阅者的事件队列"""

    def __init__(self, hub: "NotificationHub", name: str = ""):
        self.id = uuid.uuid4().hex[:8]
        self.name = name or self.id
        self._hub = hub
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def _deliver(self, event: NoteEvent) -> bool:
        if self._closed:
            return False
        if self._queue.qsize() >= MAX_PENDING_EVENTS:
            self._resync()
            return True
        self._queue.put_nowait(event)
        return True

    def _resync(self) -> None:
        """丢弃积压的事件，换成一次全量刷新提示"""
        dropped = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            dropped += 1
        logger.warning(f"subscription_overflow: {self.name}, dropped {dropped} events, resync requested")
        self._queue.put_nowait(NoteEvent(EventType.NOTES_INVALIDATED))

    async def get(self, timeout: Optional[float] = None) -> Optional[NoteEvent]:
        """
        等待下一个事件

        Returns:
            事件；订阅已关闭或超时返回 None
        """
        if self._closed and self._queue.empty():
            return None
        try:
            item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
        if item is _CLOSED:
            return None
        return item

    def get_nowait(self) -> Optional[NoteEvent]:
        """非阻塞获取事件，没有事件时返回 None"""
        try:
            item = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        return None if item is _CLOSED else item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._hub.unsubscribe(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> AsyncIterator[NoteEvent]:
        return self

    async def __anext__(self) -> NoteEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


class NotificationHub:
    """
    通知中心

    使用方式:
        hub = NotificationHub()
        subscription = hub.subscribe("sticky-3f2a")

        async for event in subscription:
            if event.requires_list_reload:
                ...

        subscription.close()
    """

    def __init__(self):
        self._subscribers: dict[str, Subscription] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, name: str = "") -> Subscription:
        subscription = Subscription(self, name)
        self._subscribers[subscription.id] = subscription
        logger.debug(f"surface_subscribed: {subscription.name}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if self._subscribers.pop(subscription.id, None) is not None:
            logger.debug(f"surface_unsubscribed: {subscription.name}")

    def publish(self, event: NoteEvent) -> int:
        """
        发布事件到所有订阅者（非阻塞）

        Returns:
            成功投递的订阅者数量
        """
        delivered = 0
        # 复制一份，投递过程中可能有订阅被关闭
        for subscription in list(self._subscribers.values()):
            if subscription._deliver(event):
                delivered += 1
        return delivered

    def note_changed(self, note_id: str, action: ChangeAction) -> int:
        return self.publish(NoteEvent(EventType.NOTE_CHANGED, note_id=note_id, action=action))

    def invalidate(self, root: str) -> int:
        return self.publish(NoteEvent(EventType.NOTES_INVALIDATED, root=root))

    def close(self) -> None:
        """关闭所有订阅"""
        for subscription in list(self._subscribers.values()):
            subscription.close()
        self._subscribers.clear()
