"""
Notification publisher.

Persists structured events (budget_alert, payment_reminder, payment_overdue)
and hands them to a delivery sink. Delivery is fire-and-forget: a failing
sink is logged and never propagates into the caller.
"""

from datetime import datetime, time
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.clock import Clock
from components.core.log import get_logger
from components.notification.models import NOTIFICATION_TYPES, Notification

logger = get_logger(__name__)


class NotificationSink:
    """Delivery boundary; the default sink only logs the event."""

    async def deliver(self, notification: Notification) -> None:
        logger.info(
            "notification_emitted",
            notification_id=notification.id,
            user_id=notification.user_id,
            type=notification.type,
            title=notification.title,
        )


class NotificationPublisher:
    """Creates at most one notification per owner/type/record/threshold per day."""

    def __init__(self, session: AsyncSession, clock: Clock, sink: Optional[NotificationSink] = None):
        self.session = session
        self.clock = clock
        self.sink = sink or NotificationSink()

    async def exists_today(
        self,
        user_id: int,
        type: str,
        related_type: Optional[str],
        related_id: Optional[int],
        threshold: Optional[int] = None,
    ) -> bool:
        """Check whether the same event was already emitted today."""
        day_start = datetime.combine(self.clock.today(), time.min)
        query = select(Notification.id).where(
            Notification.user_id == user_id,
            Notification.type == type,
            Notification.related_type == related_type,
            Notification.related_id == related_id,
            Notification.created_at >= day_start,
        )
        if threshold is not None:
            query = query.where(Notification.threshold == threshold)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    async def publish(
        self,
        user_id: int,
        type: str,
        title: str,
        message: str,
        related_type: Optional[str] = None,
        related_id: Optional[int] = None,
        threshold: Optional[int] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Optional[Notification]:
        """Persist and deliver an event unless it was already emitted today."""
        if type not in NOTIFICATION_TYPES:
            raise ValueError(f"Unknown notification type: {type}")
        if await self.exists_today(user_id, type, related_type, related_id, threshold):
            return None

        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            related_type=related_type,
            related_id=related_id,
            threshold=threshold,
            data=data or {},
            created_at=self.clock.now(),
        )
        self.session.add(notification)
        await self.session.flush()

        try:
            await self.sink.deliver(notification)
        except Exception as e:
            logger.error("notification_delivery_failed", notification_id=notification.id, error=str(e))
        return notification

    async def list_for_user(self, user_id: int, limit: int = 50):
        result = await self.session.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
