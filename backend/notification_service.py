from datetime import datetime
from decimal import Decimal
from typing import Optional
import logging

from core.document_store import DocumentStore
from core.financial_precision import format_currency, to_float
from core.side_effects import SideEffectResult, run_best_effort

logger = logging.getLogger(__name__)

NOTIFICATIONS = "notifications"
GENERIC_PROJECT_LABEL = "your project"


class NotificationService:
    """
    User inbox writer.

    Notifications are not authoritative state: every method returns a
    SideEffectResult and never raises.
    """

    def __init__(self, store: DocumentStore, log: Optional[logging.Logger] = None):
        self.store = store
        self.log = log or logger

    async def notify_investment_approved(
        self,
        user_id: str,
        investment_id: str,
        project_id: Optional[str],
        project_name: Optional[str],
        amount: Decimal,
        currency: str
    ) -> SideEffectResult:
        label = project_name or GENERIC_PROJECT_LABEL
        document = {
            "userId": user_id,
            "type": "investment_approved",
            "title": "Investment approved",
            "message": f"Your investment of {format_currency(amount, currency)} in {label} was approved.",
            "amount": to_float(amount),
            "currency": currency,
            "projectId": project_id,
            "projectName": project_name,
            "investmentId": investment_id,
            "read": False,
            "createdAt": datetime.utcnow()
        }

        async def create():
            notification_id = await self.store.insert_one(NOTIFICATIONS, document)
            self.log.info(f"[NOTIFICATION] investment_approved -> user:{user_id} ({notification_id})")
            return notification_id

        return await run_best_effort(f"notify investment approved {investment_id}", create, self.log)
