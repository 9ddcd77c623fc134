"""
策略相关数据模型
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class SignalAction(Enum):
    """信号方向"""
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class StrategyName(Enum):
    """固定的策略集合，权重表与启用开关都以此为键"""
    ARBITRAGE = "arbitrage"
    MOMENTUM = "momentum"
    VOLUME = "volume"
    TREND = "trend"
    BOLLINGER_BANDS = "bollinger_bands"
    FIBONACCI = "fibonacci"
    DCA = "dca"


@dataclass(frozen=True)
class TradingSignal:
    """交易信号"""
    action: SignalAction
    confidence: float  # 0.0 to 1.0
    reason: str  # 信号产生的原因
    target_price: Optional[float] = None
    stop_loss: Optional[float] = None
    source: Optional[StrategyName] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")
        if self.action is SignalAction.HOLD and self.confidence != 0.0:
            raise ValueError("HOLD signals carry no confidence")

    @classmethod
    def hold(cls, reason: str, source: Optional[StrategyName] = None, **details) -> 'TradingSignal':
        """零置信度的观望信号"""
        return cls(action=SignalAction.HOLD, confidence=0.0, reason=reason,
                   source=source, details=details)

    @property
    def is_actionable(self) -> bool:
        return self.action is not SignalAction.HOLD


@dataclass(frozen=True)
class TokenAnalysis:
    """单个代币一次评估的结果"""
    symbol: str
    price: float
    signals: Dict[StrategyName, TradingSignal]
    combined: TradingSignal
    timestamp: datetime = field(default_factory=datetime.now)
