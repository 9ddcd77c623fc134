import unittest

from dexbot.models.strategy_data import SignalAction, StrategyName
from dexbot.strategy.indicators import IndicatorAnalyzer


class TestInsufficientData(unittest.TestCase):
    """样本不足时所有指标都返回零置信度的 HOLD"""

    def test_short_histories_hold(self):
        cases = [
            (IndicatorAnalyzer.momentum, 19),
            (IndicatorAnalyzer.volume_spike, 4),
            (IndicatorAnalyzer.trend, 14),
            (IndicatorAnalyzer.bollinger_bands, 19),
            (IndicatorAnalyzer.fibonacci, 10),
        ]
        for func, length in cases:
            for n in (0, 1, length):
                with self.subTest(func=func.__name__, n=n):
                    signal = func([1.0 + 0.1 * i for i in range(n)])
                    self.assertEqual(signal.action, SignalAction.HOLD)
                    self.assertEqual(signal.confidence, 0.0)


class TestMomentum(unittest.TestCase):
    def test_rising_average_buys(self):
        signal = IndicatorAnalyzer.momentum([1.0] * 10 + [1.1] * 10)
        self.assertEqual(signal.action, SignalAction.BUY)
        self.assertAlmostEqual(signal.confidence, 0.8)
        self.assertEqual(signal.source, StrategyName.MOMENTUM)

    def test_falling_average_sells(self):
        signal = IndicatorAnalyzer.momentum([1.1] * 10 + [1.0] * 10)
        self.assertEqual(signal.action, SignalAction.SELL)
        self.assertAlmostEqual(signal.confidence, 0.8)

    def test_small_change_holds(self):
        signal = IndicatorAnalyzer.momentum([1.0] * 10 + [1.01] * 10)
        self.assertEqual(signal.action, SignalAction.HOLD)

    def test_confidence_scales_with_change(self):
        signal = IndicatorAnalyzer.momentum([1.0] * 10 + [1.05] * 10)
        self.assertEqual(signal.action, SignalAction.BUY)
        self.assertAlmostEqual(signal.confidence, 0.5)


class TestVolumeSpike(unittest.TestCase):
    def test_spike_buys(self):
        signal = IndicatorAnalyzer.volume_spike([100, 100, 100, 100, 400])
        self.assertEqual(signal.action, SignalAction.BUY)
        self.assertAlmostEqual(signal.confidence, 0.3)
        self.assertAlmostEqual(signal.details['volume_ratio'], 2.0)

    def test_confidence_bounded(self):
        signal = IndicatorAnalyzer.volume_spike([1, 1, 1, 1, 1000])
        self.assertEqual(signal.action, SignalAction.BUY)
        self.assertGreater(signal.confidence, 0.59)
        self.assertLessEqual(signal.confidence, 0.6)

    def test_flat_volume_holds(self):
        signal = IndicatorAnalyzer.volume_spike([100] * 5)
        self.assertEqual(signal.action, SignalAction.HOLD)
        self.assertEqual(signal.confidence, 0.0)


class TestTrend(unittest.TestCase):
    def test_short_average_above_long_buys(self):
        signal = IndicatorAnalyzer.trend([1.0] * 10 + [1.2] * 5)
        self.assertEqual(signal.action, SignalAction.BUY)
        self.assertAlmostEqual(signal.confidence, 0.7)

    def test_short_average_below_long_sells(self):
        signal = IndicatorAnalyzer.trend([1.2] * 10 + [1.0] * 5)
        self.assertEqual(signal.action, SignalAction.SELL)
        self.assertAlmostEqual(signal.confidence, 0.7)

    def test_flat_holds(self):
        signal = IndicatorAnalyzer.trend([1.0] * 15)
        self.assertEqual(signal.action, SignalAction.HOLD)


class TestBollingerBands(unittest.TestCase):
    def test_price_exactly_at_lower_band(self):
        # mean 9, population std 2 -> lower band 5
        signal = IndicatorAnalyzer.bollinger_bands([10.0] * 16 + [5.0] * 4)
        self.assertAlmostEqual(signal.details['lower'], 5.0)
        self.assertEqual(signal.action, SignalAction.BUY)
        self.assertGreaterEqual(signal.confidence, 0.0)
        self.assertLessEqual(signal.confidence, 0.9)

    def test_price_exactly_at_upper_band(self):
        signal = IndicatorAnalyzer.bollinger_bands([10.0] * 16 + [15.0] * 4)
        self.assertAlmostEqual(signal.details['upper'], 15.0)
        self.assertEqual(signal.action, SignalAction.SELL)
        self.assertLessEqual(signal.confidence, 0.9)

    def test_far_below_lower_band(self):
        signal = IndicatorAnalyzer.bollinger_bands([10.0] * 19 + [5.0])
        self.assertEqual(signal.action, SignalAction.BUY)
        self.assertGreater(signal.confidence, 0.0)
        self.assertLessEqual(signal.confidence, 0.9)

    def test_between_middle_and_upper_is_weak_buy(self):
        signal = IndicatorAnalyzer.bollinger_bands([9.0, 11.0] * 10)
        self.assertEqual(signal.action, SignalAction.BUY)
        self.assertAlmostEqual(signal.confidence, 0.3)

    def test_between_lower_and_middle_is_weak_sell(self):
        signal = IndicatorAnalyzer.bollinger_bands([11.0, 9.0] * 10)
        self.assertEqual(signal.action, SignalAction.SELL)
        self.assertAlmostEqual(signal.confidence, 0.3)

    def test_collapsed_bands_hold(self):
        signal = IndicatorAnalyzer.bollinger_bands([5.0] * 20)
        self.assertEqual(signal.action, SignalAction.HOLD)
        self.assertEqual(signal.confidence, 0.0)


class TestFibonacci(unittest.TestCase):
    # swing high 2.0, swing low 1.0 over the 10 preceding points
    WINDOW = [1.0, 2.0] + [1.5] * 8

    def analyze(self, price):
        return IndicatorAnalyzer.fibonacci(self.WINDOW + [price])

    def test_deep_retracement_is_strong_buy_with_gain_boost(self):
        signal = self.analyze(1.3)
        self.assertEqual(signal.action, SignalAction.BUY)
        self.assertAlmostEqual(signal.confidence, 0.95)
        self.assertAlmostEqual(signal.target_price, 2.618)

    def test_half_retracement_buy(self):
        signal = self.analyze(1.45)
        self.assertEqual(signal.action, SignalAction.BUY)
        self.assertAlmostEqual(signal.confidence, 0.8)
        self.assertAlmostEqual(signal.target_price, 2.414)

    def test_shallow_retracement_buy(self):
        signal = self.analyze(1.55)
        self.assertEqual(signal.action, SignalAction.BUY)
        self.assertAlmostEqual(signal.confidence, 0.6)

    def test_extension_sells(self):
        self.assertAlmostEqual(self.analyze(2.7).confidence, 0.9)
        self.assertAlmostEqual(self.analyze(2.45).confidence, 0.7)
        self.assertAlmostEqual(self.analyze(2.3).confidence, 0.5)
        for price in (2.7, 2.45, 2.3):
            self.assertEqual(self.analyze(price).action, SignalAction.SELL)

    def test_outside_zones_holds(self):
        signal = self.analyze(1.9)
        self.assertEqual(signal.action, SignalAction.HOLD)

    def test_swing_range_excludes_current_price(self):
        ten_points = [1.0, 2.0] + [1.5] * 7 + [1.3]
        self.assertEqual(IndicatorAnalyzer.fibonacci(ten_points).action, SignalAction.HOLD)
        signal = IndicatorAnalyzer.fibonacci([1.5] + ten_points)
        self.assertEqual(signal.action, SignalAction.BUY)
        self.assertEqual(signal.details["swing_high"], 2.0)

    def test_zero_range_holds(self):
        signal = IndicatorAnalyzer.fibonacci([1.0] * 11)
        self.assertEqual(signal.action, SignalAction.HOLD)


if __name__ == '__main__':
    unittest.main()
