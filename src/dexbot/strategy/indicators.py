"""
纯函数版本的技术指标策略
每个函数接收按时间排序（旧 -> 新）的序列，样本不足时返回零置信度的 HOLD
"""

from typing import Sequence

import numpy as np

from dexbot.models.strategy_data import SignalAction, StrategyName, TradingSignal

MOMENTUM_MIN_SAMPLES = 20
MOMENTUM_WINDOW = 10
MOMENTUM_THRESHOLD_PCT = 2.0

VOLUME_MIN_SAMPLES = 5
VOLUME_WINDOW = 3
VOLUME_SPIKE_RATIO = 1.5

TREND_SHORT_WINDOW = 5
TREND_LONG_WINDOW = 15
TREND_THRESHOLD_PCT = 1.0

BOLLINGER_PERIOD = 20
BOLLINGER_STD_MULTIPLIER = 2.0
BOLLINGER_WEAK_CONFIDENCE = 0.3

FIBONACCI_LOOKBACK = 10
FIBONACCI_MIN_GAIN = 0.10
RETRACEMENT_RATIOS = (0.236, 0.382, 0.5, 0.618, 0.786)
EXTENSION_RATIOS = (1.272, 1.414, 1.618, 2.0)


def _signal(action: SignalAction, confidence: float, reason: str, source: StrategyName,
            **kwargs) -> TradingSignal:
    return TradingSignal(action=action, confidence=float(min(max(confidence, 0.0), 1.0)),
                         reason=reason, source=source, **kwargs)


class IndicatorAnalyzer:
    """技术指标分析器"""

    @staticmethod
    def momentum(prices: Sequence[float]) -> TradingSignal:
        """最近10个价格均值相对之前10个价格均值的变化"""
        source = StrategyName.MOMENTUM
        prices = np.asarray(prices, dtype=float)
        if len(prices) < MOMENTUM_MIN_SAMPLES:
            return TradingSignal.hold("Insufficient price history for momentum", source)

        recent = prices[-MOMENTUM_WINDOW:].mean()
        older = prices[-2 * MOMENTUM_WINDOW:-MOMENTUM_WINDOW].mean()
        if older <= 0:
            return TradingSignal.hold("Invalid reference price for momentum", source)

        change_pct = float((recent - older) / older * 100)
        confidence = min(abs(change_pct) / 10, 0.8)

        if change_pct > MOMENTUM_THRESHOLD_PCT:
            return _signal(SignalAction.BUY, confidence,
                           f"Positive momentum: {change_pct:.2f}%", source,
                           details={'change_pct': change_pct})
        if change_pct < -MOMENTUM_THRESHOLD_PCT:
            return _signal(SignalAction.SELL, confidence,
                           f"Negative momentum: {change_pct:.2f}%", source,
                           details={'change_pct': change_pct})
        return TradingSignal.hold(f"Flat momentum: {change_pct:.2f}%", source, change_pct=change_pct)

    @staticmethod
    def volume_spike(volumes: Sequence[float]) -> TradingSignal:
        source = StrategyName.VOLUME
        volumes = np.asarray(volumes, dtype=float)
        if len(volumes) < VOLUME_MIN_SAMPLES:
            return TradingSignal.hold("Insufficient volume history", source)

        current = volumes[-1]
        average = volumes[-VOLUME_WINDOW:].mean()
        if average <= 0:
            return TradingSignal.hold("No recent volume", source)

        ratio = float(current / average)
        if ratio > VOLUME_SPIKE_RATIO:
            return _signal(SignalAction.BUY, min((ratio - 1) * 0.3, 0.6),
                           f"Volume spike: {ratio:.2f}x average", source,
                           details={'volume_ratio': ratio})
        return TradingSignal.hold(f"Normal volume: {ratio:.2f}x average", source, volume_ratio=ratio)

    @staticmethod
    def trend(prices: Sequence[float]) -> TradingSignal:
        """短期均线(5)与长期均线(15)的相对差"""
        source = StrategyName.TREND
        prices = np.asarray(prices, dtype=float)
        if len(prices) < TREND_LONG_WINDOW:
            return TradingSignal.hold("Insufficient price history for trend", source)

        short_ma = prices[-TREND_SHORT_WINDOW:].mean()
        long_ma = prices[-TREND_LONG_WINDOW:].mean()
        if long_ma <= 0:
            return TradingSignal.hold("Invalid moving average", source)

        diff_pct = float((short_ma - long_ma) / long_ma * 100)
        confidence = min(abs(diff_pct) / 5, 0.7)
        details = {'short_ma': float(short_ma), 'long_ma': float(long_ma), 'diff_pct': diff_pct}

        if diff_pct > TREND_THRESHOLD_PCT:
            return _signal(SignalAction.BUY, confidence,
                           f"Uptrend: SMA5 above SMA15 by {diff_pct:.2f}%", source, details=details)
        if diff_pct < -TREND_THRESHOLD_PCT:
            return _signal(SignalAction.SELL, confidence,
                           f"Downtrend: SMA5 below SMA15 by {abs(diff_pct):.2f}%", source, details=details)
        return TradingSignal.hold("No clear trend", source, **details)

    @staticmethod
    def bollinger_bands(prices: Sequence[float]) -> TradingSignal:
        """20周期均值 ± 2倍总体标准差"""
        source = StrategyName.BOLLINGER_BANDS
        prices = np.asarray(prices, dtype=float)
        if len(prices) < BOLLINGER_PERIOD:
            return TradingSignal.hold("Insufficient price history for Bollinger Bands", source)

        window = prices[-BOLLINGER_PERIOD:]
        price = float(window[-1])
        middle = float(window.mean())
        std = float(window.std())
        upper = middle + BOLLINGER_STD_MULTIPLIER * std
        lower = middle - BOLLINGER_STD_MULTIPLIER * std
        details = {'upper': upper, 'middle': middle, 'lower': lower, 'price': price}

        if std == 0:
            return TradingSignal.hold("Bollinger Bands collapsed (no volatility)", source, **details)

        if price <= lower:
            confidence = min(0.9, (lower - price) / lower * 2) if lower > 0 else 0.9
            return _signal(SignalAction.BUY, confidence,
                           f"Price {price:.4f} at/below lower band {lower:.4f}", source,
                           target_price=middle, details=details)
        if price >= upper:
            confidence = min(0.9, (price - upper) / upper * 2)
            return _signal(SignalAction.SELL, confidence,
                           f"Price {price:.4f} at/above upper band {upper:.4f}", source,
                           target_price=middle, details=details)
        if middle < price < upper:
            return _signal(SignalAction.BUY, BOLLINGER_WEAK_CONFIDENCE,
                           "Price between middle and upper band", source, details=details)
        if lower < price < middle:
            return _signal(SignalAction.SELL, BOLLINGER_WEAK_CONFIDENCE,
                           "Price between lower and middle band", source, details=details)
        return TradingSignal.hold("Price at middle band", source, **details)

    @staticmethod
    def fibonacci(prices: Sequence[float]) -> TradingSignal:
        """
        以当前价格之前10个点的高低点计算回撤位与扩展位

        回撤区间越深买入置信度越高，突破扩展位则卖出。
        """
        source = StrategyName.FIBONACCI
        prices = np.asarray(prices, dtype=float)
        if len(prices) < FIBONACCI_LOOKBACK + 1:
            return TradingSignal.hold("Insufficient price history for Fibonacci", source)

        # 高低点不含当前价格，否则当前价格永远不会高于扩展位，卖出信号无法触发
        window = prices[-(FIBONACCI_LOOKBACK + 1):-1]
        price = float(prices[-1])
        swing_high = float(window.max())
        swing_low = float(window.min())
        span = swing_high - swing_low
        if span <= 0:
            return TradingSignal.hold("No swing range for Fibonacci", source)

        retracement = {r: swing_high - span * r for r in RETRACEMENT_RATIOS}
        extension = {r: swing_low + span * r for r in EXTENSION_RATIOS}
        details = {
            'swing_high': swing_high,
            'swing_low': swing_low,
            'retracement': retracement,
            'extension': extension,
        }

        if retracement[0.786] <= price <= retracement[0.618]:
            action, confidence, level, target = SignalAction.BUY, 0.8, 0.618, extension[1.618]
            reason = f"Price {price:.4f} at 61.8% retracement"
        elif retracement[0.618] <= price <= retracement[0.5]:
            action, confidence, level, target = SignalAction.BUY, 0.6, 0.5, extension[1.414]
            reason = f"Price {price:.4f} at 50% retracement"
        elif retracement[0.5] <= price <= retracement[0.382]:
            action, confidence, level, target = SignalAction.BUY, 0.4, 0.382, extension[1.272]
            reason = f"Price {price:.4f} at 38.2% retracement"
        elif price >= extension[1.618]:
            action, confidence, level, target = SignalAction.SELL, 0.9, 1.618, retracement[0.618]
            reason = f"Price {price:.4f} at 161.8% extension"
        elif price >= extension[1.414]:
            action, confidence, level, target = SignalAction.SELL, 0.7, 1.414, retracement[0.5]
            reason = f"Price {price:.4f} at 141.4% extension"
        elif price >= extension[1.272]:
            action, confidence, level, target = SignalAction.SELL, 0.5, 1.272, retracement[0.382]
            reason = f"Price {price:.4f} at 127.2% extension"
        else:
            return TradingSignal.hold("Price outside Fibonacci zones", source, **details)

        details['level'] = level
        if action is SignalAction.BUY and price > 0:
            gain = (target - price) / price
            if gain >= FIBONACCI_MIN_GAIN:
                confidence = min(0.95, confidence + 0.2)
                reason += f" (target {target:.4f}, potential gain {gain * 100:.1f}%)"

        return _signal(action, confidence, reason, source, target_price=target, details=details)
