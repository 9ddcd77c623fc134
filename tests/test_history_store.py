import unittest
from datetime import datetime, timedelta

from dexbot.data.history_store import HistoryStore, RingBuffer


class TestRingBuffer(unittest.TestCase):
    def test_values_in_insertion_order_before_full(self):
        buf = RingBuffer(5)
        for v in (1, 2, 3):
            buf.append(v)
        self.assertEqual(len(buf), 3)
        self.assertEqual(buf.values().tolist(), [1.0, 2.0, 3.0])

    def test_overwrites_oldest_when_full(self):
        buf = RingBuffer(3)
        for v in range(1, 6):
            buf.append(v)
        self.assertEqual(len(buf), 3)
        self.assertEqual(buf.values().tolist(), [3.0, 4.0, 5.0])
        self.assertEqual(buf.last(), 5.0)

    def test_values_returns_copy(self):
        buf = RingBuffer(2)
        buf.append(1)
        values = buf.values()
        values[0] = 99
        self.assertEqual(buf.values().tolist(), [1.0])

    def test_rejects_non_positive_capacity(self):
        with self.assertRaises(ValueError):
            RingBuffer(0)


class TestHistoryStore(unittest.TestCase):
    def setUp(self):
        self.store = HistoryStore(price_capacity=4, volume_capacity=3)

    def test_length_never_exceeds_capacity(self):
        for i in range(10):
            self.store.record("GALA", float(i), volume=float(i * 10))
        self.assertEqual(self.store.series("GALA").tolist(), [6.0, 7.0, 8.0, 9.0])
        self.assertEqual(self.store.volumes("GALA").tolist(), [70.0, 80.0, 90.0])

    def test_missing_volume_only_records_price(self):
        self.store.record("GALA", 1.0)
        self.store.record("GALA", 2.0, volume=5.0)
        self.assertEqual(len(self.store.series("GALA")), 2)
        self.assertEqual(self.store.volumes("GALA").tolist(), [5.0])

    def test_unknown_token_is_empty(self):
        self.assertEqual(len(self.store.series("NOPE")), 0)
        self.assertIsNone(self.store.latest("NOPE"))
        self.assertEqual(self.store.observations("NOPE"), [])

    def test_tokens_are_independent(self):
        self.store.record("GALA", 1.0)
        self.store.record("GWETH", 3000.0)
        self.assertEqual(self.store.latest("GALA"), 1.0)
        self.assertEqual(self.store.latest("GWETH"), 3000.0)
        self.assertCountEqual(self.store.tokens(), ["GALA", "GWETH"])

    def test_frame_indexed_by_timestamp(self):
        start = datetime(2024, 1, 1, 12, 0)
        for i in range(3):
            self.store.record("GALA", 1.0 + i, timestamp=start + timedelta(minutes=i))
        frame = self.store.frame("GALA")
        self.assertEqual(list(frame['price']), [1.0, 2.0, 3.0])
        self.assertEqual(frame.index[0], start)

    def test_clear(self):
        self.store.record("GALA", 1.0)
        self.store.record("GWETH", 2.0)
        self.store.clear("GALA")
        self.assertEqual(self.store.tokens(), ["GWETH"])
        self.store.clear()
        self.assertEqual(self.store.tokens(), [])


if __name__ == '__main__':
    unittest.main()
