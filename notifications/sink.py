import json
import logging
from typing import Any, Dict, Optional

import redis
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction
from django.utils import timezone

logger = logging.getLogger(__name__)

ORDER_CREATED = 'order:created'
ORDER_NEW_PUBLIC = 'order:new-public'
ORDER_UPDATED = 'order:updated'
ORDER_PAID = 'order:paid'
ORDER_COMPLETED = 'order:completed'
TABLE_UPDATED = 'table:updated'
BOOKING_CREATED = 'booking:created'
BOOKING_CHECKED_IN = 'booking:checked_in'
BOOKING_CHECKED_OUT = 'booking:checked_out'
BOOKING_CANCELLED = 'booking:cancelled'
BOOKING_NO_SHOW = 'booking:no_show'
BOOKING_PAYMENT = 'booking:payment'
INVOICE_GENERATED = 'invoice:generated'
INVOICE_PAYMENT = 'invoice:payment'


class EventSink:
    """Publishes state-change events to a Redis pub/sub channel"""

    def __init__(self, client: Optional[redis.Redis] = None):
        self._client = client

    @property
    def redis_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.Redis(
                host=settings.REDIS_HOST,
                port=int(settings.REDIS_PORT),
                db=int(settings.REDIS_DB),
                decode_responses=True,
            )
        return self._client

    def emit(self, event: str, data: Dict[str, Any]) -> None:
        """
        Queue an event for publishing once the surrounding transaction commits.

        Outside a transaction the callback runs immediately.
        """
        transaction.on_commit(lambda: self.publish(event, data))

    def publish(self, event: str, data: Dict[str, Any]) -> bool:
        """
        Publish one event. Delivery is best-effort: failures are logged
        and dropped.

        Returns:
            True if Redis accepted the message
        """
        if not getattr(settings, 'EVENTS_ENABLED', True):
            return False

        message = json.dumps({
            'event': event,
            'data': data,
            'timestamp': timezone.now().isoformat(),
        }, cls=DjangoJSONEncoder)

        try:
            self.redis_client.publish(settings.EVENTS_CHANNEL, message)
        except redis.RedisError as exc:
            logger.warning("Dropped event %s: %s", event, exc)
            return False
        return True


_sink = None


def get_event_sink() -> EventSink:
    global _sink
    if _sink is None:
        _sink = EventSink()
    return _sink


def emit(event: str, data: Dict[str, Any]) -> None:
    get_event_sink().emit(event, data)
