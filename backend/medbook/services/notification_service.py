"""
Outbound notifications, queued on a Redis list for the mail worker.

Sending is someone else's job: this service only records that a feedback
request should go out. Queueing never fails the request that triggered it.
"""

import json
from datetime import datetime

from redis.exceptions import RedisError

from medbook.core.config import get_settings
from medbook.core.logging import get_logger
from medbook.infrastructure.redis_client import get_redis

logger = get_logger(__name__)


def feedback_form_url(event_id: int) -> str:
    return f"{get_settings().PUBLIC_BASE_URL.rstrip('/')}/feedback/event/{event_id}"


async def enqueue_feedback_request(
    *,
    recipient_email: str,
    recipient_name: str | None,
    event_id: int,
    event_title: str,
    event_starts_at: datetime,
) -> bool:
    """Queue a post-attendance feedback email. Returns True if it was queued."""
    client = await get_redis()
    if not client:
        logger.warning("feedback_request_not_queued", event_id=event_id, reason="redis_unavailable")
        return False

    message = {
        "type": "feedback_request",
        "recipient_email": recipient_email,
        "recipient_name": recipient_name,
        "event_id": event_id,
        "event_title": event_title,
        "event_starts_at": event_starts_at.isoformat(),
        "feedback_form_url": feedback_form_url(event_id),
    }
    try:
        await client.rpush(get_settings().NOTIFICATION_QUEUE_KEY, json.dumps(message))
    except RedisError as e:
        logger.error("feedback_request_queue_failed", event_id=event_id, error=str(e))
        return False

    logger.info("feedback_request_queued", event_id=event_id, recipient=recipient_email)
    return True
