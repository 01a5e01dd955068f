"""
EstateCRM Reminders - Realtime Broadcast Channel

Purpose: Push in-app banner events to connected admin/employee consoles over
WebSockets. Fire-and-forget: a dead connection is dropped and logged.

Deployment modes:
    - apscheduler: the tick runs in the API process and the dispatcher
      publishes straight to the ConnectionManager.
    - eventbridge: the tick runs in Lambda, which has no WebSocket clients.
      The dispatcher only stores the in-app notification; NotificationRelay
      runs in every API process and publishes newly stored notifications to
      that process's clients.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fastapi import WebSocket

from estatecrm.clock import Clock
from estatecrm.models.notification import InAppNotification

logger = logging.getLogger(__name__)


def notification_event(notification: InAppNotification) -> Dict[str, Any]:
    """Broadcast payload for a stored in-app notification"""
    return {
        "notificationId": notification.notification_id,
        "ownerId": notification.owner_id,
        "title": notification.title,
        "message": notification.message,
        "reminderData": notification.reminder_data,
        "createdAt": notification.created_at.isoformat(),
    }


class ConnectionManager:
    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.info(f"Broadcast client connected ({len(self.active_connections)} active)")

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
        logger.info(f"Broadcast client disconnected ({len(self.active_connections)} active)")

    async def publish(self, event: str, payload: Dict[str, Any]) -> int:
        """Send an event to every connection; returns the number of clients reached"""
        message = {"event": event, "data": payload}
        delivered = 0

        for connection in list(self.active_connections):
            try:
                await connection.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping broadcast client after send failure: {e}")
                self.disconnect(connection)

        return delivered


class NotificationRelay:
    """
    Publishes notifications stored by another process to local WebSocket clients

    Each relay pass reads notifications created within the lookback window and
    publishes the ones it has not seen yet. The window overlaps previous passes
    so a notification that a scan missed (eventually consistent reads, clock
    skew between Lambda and this host) is still picked up on a later pass.
    """

    def __init__(self, store, channel: ConnectionManager, event_name: str,
                 lookback: timedelta, clock: Optional[Clock] = None):
        self.store = store
        self.channel = channel
        self.event_name = event_name
        self.lookback = lookback
        self.clock = clock or Clock()
        # Only notifications created after the relay started are relayed
        self.started_at = self.clock.now()
        self._seen: Dict[str, datetime] = {}

    async def relay(self, now: Optional[datetime] = None) -> int:
        """Publish unseen notifications; returns how many were published"""
        now = now or self.clock.now()
        since = max(self.started_at, now - self.lookback)

        notifications = await self.store.list_notifications_since(since)
        fresh = [n for n in notifications if n.notification_id not in self._seen]
        fresh.sort(key=lambda n: n.created_at)

        for notification in fresh:
            self._seen[notification.notification_id] = notification.created_at
            await self.channel.publish(self.event_name, notification_event(notification))

        self._seen = {nid: created for nid, created in self._seen.items() if created > since}

        if fresh:
            logger.info(f"Relayed {len(fresh)} notifications to "
                        f"{len(self.channel.active_connections)} broadcast clients")
        return len(fresh)
