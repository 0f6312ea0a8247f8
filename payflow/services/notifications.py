"""
PayFlow HR - Payroll Notifications

Fire-and-forget hook for payroll state changes. Delivery (email, in-app,
push) belongs to the host platform; the default notifier only logs.
"""

import logging
import uuid
from typing import Any, Dict, Optional


logger = logging.getLogger(__name__)


# Event names
ADVANCE_SUBMITTED = "advance.submitted"
ADVANCE_REVIEWED = "advance.reviewed"
PAYSLIP_PUBLISHED = "payslip.published"


class PayrollNotifier:
    """Default notifier. Subclass and override notify() to deliver."""

    async def notify(
        self,
        event: str,
        recipient_id: Optional[uuid.UUID],
        payload: Dict[str, Any],
    ) -> None:
        logger.info(f"Payroll event {event} for {recipient_id}: {payload}")


async def send_notification(
    notifier: PayrollNotifier,
    event: str,
    recipient_id: Optional[uuid.UUID],
    payload: Dict[str, Any],
) -> None:
    """Deliver a notification; failures are logged and never propagate."""
    try:
        await notifier.notify(event, recipient_id, payload)
    except Exception as e:
        # Log but don't fail - the state change is already committed
        logger.error(f"Failed to send {event} notification to {recipient_id}: {e}")
