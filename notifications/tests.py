import json
from decimal import Decimal
from unittest import mock

import redis
from django.test import TestCase, override_settings

from .sink import BOOKING_CREATED, ORDER_PAID, EventSink


class EventSinkTests(TestCase):
    """Best-effort publishing of state-change events"""

    def setUp(self):
        self.redis = mock.Mock(spec=redis.Redis)
        self.sink = EventSink(client=self.redis)

    @override_settings(EVENTS_CHANNEL='hotel-events')
    def test_publish_message_shape(self):
        self.assertTrue(self.sink.publish(ORDER_PAID, {'order_number': 'ORD250700001', 'total': 84}))

        channel, message = self.redis.publish.call_args.args
        self.assertEqual(channel, 'hotel-events')
        payload = json.loads(message)
        self.assertEqual(payload['event'], 'order:paid')
        self.assertEqual(payload['data'], {'order_number': 'ORD250700001', 'total': 84})
        self.assertIn('timestamp', payload)

    def test_decimals_are_encoded(self):
        self.sink.publish(ORDER_PAID, {'total': Decimal('189.00')})
        payload = json.loads(self.redis.publish.call_args.args[1])
        self.assertEqual(payload['data']['total'], '189.00')

    @override_settings(EVENTS_ENABLED=False)
    def test_disabled_sink_publishes_nothing(self):
        self.assertFalse(self.sink.publish(BOOKING_CREATED, {}))
        self.redis.publish.assert_not_called()

    def test_redis_failure_is_dropped(self):
        self.redis.publish.side_effect = redis.ConnectionError('connection refused')

        with self.assertLogs('notifications.sink', level='WARNING') as logs:
            self.assertFalse(self.sink.publish(BOOKING_CREATED, {'booking_number': 'BKG25070042'}))
        self.assertIn('booking:created', logs.output[0])

    def test_emit_waits_for_commit(self):
        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            self.sink.emit(BOOKING_CREATED, {'id': 1})
        self.redis.publish.assert_not_called()
        self.assertEqual(len(callbacks), 1)

        callbacks[0]()
        self.redis.publish.assert_called_once()
