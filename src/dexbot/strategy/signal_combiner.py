"""
信号合成 - 按档案权重加权各策略信号
"""

from typing import Mapping, Optional

from dexbot.config.profiles import EnabledStrategies, StrategyWeights
from dexbot.models.strategy_data import SignalAction, StrategyName, TradingSignal

MIN_NET_SCORE = 0.3


def combine_signals(signals: Mapping[StrategyName, TradingSignal],
                    weights: StrategyWeights,
                    enabled: Optional[EnabledStrategies] = None) -> TradingSignal:
    """
    纯函数：加权合成

    buy/sell 分数分别为同向信号的 权重 x 置信度 之和，净分数绝对值低于 0.3 时观望。
    净分数恰好为 0 也视为观望。
    """
    enabled = enabled or EnabledStrategies()
    buy_score = 0.0
    sell_score = 0.0
    reasons = []

    for name in StrategyName:
        signal = signals.get(name)
        if signal is None or not enabled.is_enabled(name):
            continue
        contribution = weights.get(name) * signal.confidence
        if signal.action is SignalAction.BUY:
            buy_score += contribution
            reasons.append(signal.reason)
        elif signal.action is SignalAction.SELL:
            sell_score += contribution
            reasons.append(signal.reason)

    net = buy_score - sell_score
    details = {'buy_score': buy_score, 'sell_score': sell_score, 'net_score': net}

    if abs(net) < MIN_NET_SCORE:
        return TradingSignal.hold("Weak signal strength", **details)

    if net > 0:
        action = SignalAction.BUY
    else:
        action = SignalAction.SELL

    return TradingSignal(action=action, confidence=min(abs(net), 1.0),
                         reason="; ".join(reasons), details=details)
