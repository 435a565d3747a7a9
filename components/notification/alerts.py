"""Budget threshold alerts for limited ledger categories."""

from typing import Iterable, Optional

from components.core.config import get_settings
from components.core.log import get_logger
from components.ledger.models import WeeklyLedger
from components.notification.publisher import NotificationPublisher

logger = get_logger(__name__)
settings = get_settings()


class BudgetAlertChecker:
    """Emits one budget_alert per category for the highest threshold crossed."""

    def __init__(self, publisher: NotificationPublisher, thresholds: Optional[Iterable[int]] = None):
        self.publisher = publisher
        self.thresholds = sorted(thresholds or settings.BUDGET_ALERT_THRESHOLDS, reverse=True)

    async def check_ledger(self, ledger: WeeklyLedger) -> int:
        emitted = 0
        for category in ledger.categories:
            if not category.is_limited or category.allocation <= 0:
                continue
            percent = category.paid_total / category.allocation * 100
            crossed = next((t for t in self.thresholds if percent >= t), None)
            if crossed is None:
                continue

            title = "Budget exceeded" if crossed >= 100 else "Budget warning"
            notification = await self.publisher.publish(
                user_id=ledger.user_id,
                type="budget_alert",
                title=title,
                message=f"{percent:.0f}% of the weekly allocation for category {category.category_id} is spent",
                related_type="ledger_category",
                related_id=category.id,
                threshold=crossed,
                data={
                    "ledger_id": ledger.id,
                    "category_id": category.category_id,
                    "allocated": category.allocation,
                    "spent": category.paid_total,
                    "percentage": round(percent, 2),
                },
            )
            if notification is not None:
                emitted += 1
        return emitted
