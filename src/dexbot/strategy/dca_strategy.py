"""
定投 (DCA) 策略
按代币维护累积仓位；价格低于均价时加仓，达到最大次数后在盈利时卖出
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from dexbot.models.strategy_data import SignalAction, StrategyName, TradingSignal
from dexbot.utils.log import setup_logging

log = setup_logging(module_prefix='STRATEGY')


@dataclass
class DCAPosition:
    """累积仓位"""
    symbol: str
    total_amount: float
    total_cost: float
    average_price: float
    dca_count: int
    last_dca_time: datetime
    target_price: float


class DCAStrategy:
    """有状态的定投策略，仓位只能通过 clear_position 显式清除"""

    def __init__(self, base_amount: float = 100.0, max_count: int = 10,
                 interval: timedelta = timedelta(minutes=5),
                 take_profit: float = 0.05,
                 now: Callable[[], datetime] = datetime.now):
        self.base_amount = base_amount
        self.max_count = max_count
        self.interval = interval
        self.take_profit = take_profit
        self.now = now
        self._positions: Dict[str, DCAPosition] = {}

    def evaluate(self, symbol: str, price: float) -> TradingSignal:
        """
        生成定投信号；BUY 决策会立即计入仓位

        details 中的 dca_count 为本次决策前的累积次数。
        """
        source = StrategyName.DCA
        now = self.now()
        position = self._positions.get(symbol)

        if position is None:
            signal = TradingSignal(
                action=SignalAction.BUY,
                confidence=0.6,
                reason=f"Starting new DCA position for {symbol} at {price:.4f}",
                source=source,
                details={'dca_amount': self.base_amount, 'average_price': price, 'dca_count': 0},
            )
            self.execute_dca(symbol, self.base_amount, price, at=now)
            return signal

        details = {'average_price': position.average_price, 'dca_count': position.dca_count}

        elapsed = now - position.last_dca_time
        if elapsed < self.interval:
            remaining = (self.interval - elapsed).total_seconds()
            return TradingSignal.hold(f"DCA cooldown active for {symbol} - {remaining:.0f}s remaining",
                                      source, **details)

        price_diff = (price - position.average_price) / position.average_price

        if position.dca_count >= self.max_count:
            if price_diff >= self.take_profit:
                return TradingSignal(
                    action=SignalAction.SELL,
                    confidence=0.8,
                    reason=f"DCA complete for {symbol} - {price_diff * 100:.1f}% profit achieved",
                    target_price=price,
                    source=source,
                    details=dict(details, dca_amount=position.total_amount),
                )
            return TradingSignal.hold(f"DCA complete for {symbol} - waiting for better exit price",
                                      source, **details)

        if price_diff < -0.05:
            amount, confidence = self.base_amount * 1.5, 0.8
        elif price_diff < -0.02:
            amount, confidence = self.base_amount, 0.7
        elif price_diff < 0.02:
            amount, confidence = self.base_amount * 0.5, 0.4
        else:
            return TradingSignal.hold(
                f"Price {price:.4f} above DCA average {position.average_price:.4f} - skipping DCA",
                source, **details)

        log.debug(f"[DCA] {symbol}: 均价 {position.average_price:.4f}, 偏离 {price_diff * 100:.2f}%, "
                  f"加仓 {amount}")
        signal = TradingSignal(
            action=SignalAction.BUY,
            confidence=confidence,
            reason=f"DCA {position.dca_count + 1}/{self.max_count} for {symbol} - "
                   f"price {price_diff * 100:.1f}% from average",
            source=source,
            details=dict(details, dca_amount=amount),
        )
        self.execute_dca(symbol, amount, price, at=now)
        return signal

    def execute_dca(self, symbol: str, amount: float, price: float, at: Optional[datetime] = None):
        """计入一次加仓并重新计算加权均价"""
        at = at or self.now()
        position = self._positions.get(symbol)

        if position is None:
            position = DCAPosition(
                symbol=symbol,
                total_amount=amount,
                total_cost=amount * price,
                average_price=price,
                dca_count=1,
                last_dca_time=at,
                target_price=price * 1.1,
            )
            self._positions[symbol] = position
        else:
            position.total_amount += amount
            position.total_cost += amount * price
            position.average_price = position.total_cost / position.total_amount
            position.dca_count += 1
            position.last_dca_time = at

        log.info(f"[DCA] {symbol}: 加仓 {amount} @ {price:.4f} (均价 {position.average_price:.4f})")

    def get_position(self, symbol: str) -> Optional[DCAPosition]:
        return self._positions.get(symbol)

    def get_all_positions(self) -> List[DCAPosition]:
        return list(self._positions.values())

    def clear_position(self, symbol: str) -> bool:
        removed = self._positions.pop(symbol, None)
        if removed is not None:
            log.info(f"[DCA] {symbol}: 仓位已清除")
        return removed is not None
