"""
Notification side channel.

Notifications are published to the broker after the ledger mutation has been
committed. A failed publish is logged and never undoes the mutation.
"""
import logging
from decimal import Decimal
from typing import Optional

from spend_circle.core.config import ledger_settings
from spend_circle.rabbitmq.producer import get_rabbitmq_producer
from spend_circle.schemas.profile_schema import UserProfile

logger = logging.getLogger(__name__)


def format_amount(amount) -> str:
    return f"{ledger_settings.currency_symbol}{Decimal(amount):.2f}"


def circle_link(circle_id: Optional[str], tab: str) -> str:
    if not circle_id:
        return "/notifications"
    return f"{ledger_settings.app_base_path}/{circle_id}?tab={tab}"


def create_notification(
    user_id: str,
    from_user: UserProfile,
    type: str,
    message: str,
    link: str,
    related_id: Optional[str] = None,
) -> bool:
    """Enqueue one notification for ``user_id``. Returns False if it could not be sent."""
    notification = {
        "user_id": user_id,
        "from_user": from_user.model_dump(mode="json"),
        "type": type,
        "message": message,
        "link": link,
        "related_id": related_id,
    }
    try:
        return get_rabbitmq_producer().publish_notification(notification)
    except Exception as e:
        logger.error(f"Could not enqueue {type} notification for {user_id}: {e}")
        return False


def delete_notification_by_related_id(related_id: str) -> bool:
    """Withdraw notifications tied to ``related_id`` (a debt, claim or settlement)."""
    try:
        return get_rabbitmq_producer().publish_notification_deletion(related_id)
    except Exception as e:
        logger.error(f"Could not withdraw notifications for {related_id}: {e}")
        return False
