import unittest

from dexbot.utils.events import EventBus, EventTypes


class TestEventBus(unittest.TestCase):
    def setUp(self):
        self.bus = EventBus()
        self.received = []

    def test_publish_reaches_subscribers(self):
        self.bus.subscribe(EventTypes.TRADE_COMPLETED, self.received.append)
        event = self.bus.publish(EventTypes.TRADE_COMPLETED, {'id': 't1'}, source='test')

        self.assertEqual(self.received, [event])
        self.assertEqual(event.data, {'id': 't1'})
        self.assertEqual(event.source, 'test')

    def test_other_event_types_are_not_delivered(self):
        self.bus.subscribe(EventTypes.TRADE_COMPLETED, self.received.append)
        self.bus.publish(EventTypes.PROFILE_SWITCHED, {})
        self.assertEqual(self.received, [])

    def test_unsubscribe(self):
        self.bus.subscribe(EventTypes.CYCLE_COMPLETED, self.received.append)
        self.bus.unsubscribe(EventTypes.CYCLE_COMPLETED, self.received.append)
        self.bus.publish(EventTypes.CYCLE_COMPLETED, {})
        self.assertEqual(self.received, [])
        # unknown callbacks are ignored
        self.bus.unsubscribe(EventTypes.CYCLE_COMPLETED, print)

    def test_failing_subscriber_does_not_break_publisher(self):
        def broken(event):
            raise RuntimeError("handler bug")

        self.bus.subscribe(EventTypes.ERROR_OCCURRED, broken)
        self.bus.subscribe(EventTypes.ERROR_OCCURRED, self.received.append)
        self.bus.publish(EventTypes.ERROR_OCCURRED, {'error': 'x'})
        self.assertEqual(len(self.received), 1)

    def test_subscriber_counts(self):
        self.bus.subscribe(EventTypes.SYSTEM_STARTED, self.received.append)
        self.bus.subscribe(EventTypes.SYSTEM_STOPPED, self.received.append)
        self.bus.subscribe(EventTypes.SYSTEM_STOPPED, print)
        self.assertEqual(self.bus.get_subscriber_count(EventTypes.SYSTEM_STOPPED), 2)
        self.assertEqual(self.bus.get_subscriber_count(), 3)

        self.bus.clear_subscribers(EventTypes.SYSTEM_STOPPED)
        self.assertEqual(self.bus.get_subscriber_count(), 1)
        self.bus.clear_subscribers()
        self.assertEqual(self.bus.get_subscriber_count(), 0)


if __name__ == '__main__':
    unittest.main()
