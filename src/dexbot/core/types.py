from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from dexbot.models.strategy_data import SignalAction


class TradeStatus(Enum):
    """交易生命周期: PENDING -> FILLED | FAILED"""
    PENDING = "PENDING"
    FILLED = "FILLED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not TradeStatus.PENDING


class IllegalTradeTransition(Exception):
    """对已结束的交易再次变更状态"""


@dataclass
class TradeExecution:
    """
    一笔交易的执行记录

    amount 以花费的资产计: BUY 为计价币数量, SELL 为代币数量。
    price 为每个代币对应的计价币数量, 成交后填写。
    """
    id: str
    token: str
    action: SignalAction
    amount: float
    confidence: float
    reason: str
    price: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now)
    status: TradeStatus = TradeStatus.PENDING
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        if self.action is SignalAction.HOLD:
            raise ValueError("HOLD cannot be executed as a trade")

    def fill(self, price: float, tx_hash: Optional[str] = None, at: Optional[datetime] = None):
        self._ensure_pending(TradeStatus.FILLED)
        self.price = price
        self.tx_hash = tx_hash
        self.status = TradeStatus.FILLED
        self.completed_at = at or datetime.now()

    def fail(self, error: Optional[str] = None, at: Optional[datetime] = None):
        self._ensure_pending(TradeStatus.FAILED)
        self.error = error
        self.status = TradeStatus.FAILED
        self.completed_at = at or datetime.now()

    def _ensure_pending(self, target: TradeStatus):
        if self.status is not TradeStatus.PENDING:
            raise IllegalTradeTransition(
                f"Trade {self.id} is {self.status.value}, cannot move to {target.value}"
            )

    @property
    def quantity(self) -> float:
        """成交的代币数量"""
        if self.action is SignalAction.SELL:
            return self.amount
        return self.amount / self.price if self.price > 0 else 0.0

    @property
    def notional(self) -> float:
        """以计价币计的成交额"""
        if self.action is SignalAction.BUY:
            return self.amount
        return self.amount * self.price


@dataclass(frozen=True)
class SwapResult:
    """链上兑换确认结果"""
    tx_hash: str
    amount_in: float
    amount_out: float
    price: float
