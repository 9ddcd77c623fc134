"""
市场数据相关类型定义
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class TokenInfo:
    """交易所支持的代币"""
    symbol: str
    identifier: str  # 链上类标识, 如 GALA|Unit|none|none
    decimals: int
    name: Optional[str] = None


@dataclass(frozen=True)
class Observation:
    """单次价格/成交量观测"""
    price: float
    volume: Optional[float] = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class FeeTierQuote:
    """某个费率档位的报价"""
    fee_tier: int
    price: float
