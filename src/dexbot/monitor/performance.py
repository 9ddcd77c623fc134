"""
交易表现与成交量统计
订阅 TRADE_COMPLETED 事件；已实现盈亏按代币先进先出 (FIFO) 匹配买卖批次
"""

import math
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Deque, Dict, List, Optional

import pandas as pd

from dexbot.core.types import TradeExecution, TradeStatus
from dexbot.models.strategy_data import SignalAction
from dexbot.monitor.data import PerformanceMetrics, VolumeMetrics
from dexbot.risk.position_sizer import KellyParameters
from dexbot.utils.data_transforms import daily_totals, trades_to_dataframe
from dexbot.utils.log import setup_logging

log = setup_logging(module_prefix='MONITOR')

TRADING_DAYS_PER_YEAR = 365


@dataclass
class _Lot:
    quantity: float
    price: float


@dataclass(frozen=True)
class ClosedTrade:
    """一笔卖出与其匹配的买入批次"""
    token: str
    quantity: float
    cost: float
    proceeds: float
    timestamp: datetime

    @property
    def pnl(self) -> float:
        return self.proceeds - self.cost

    @property
    def return_fraction(self) -> float:
        return self.pnl / self.cost if self.cost > 0 else 0.0


class PerformanceTracker:
    """已实现盈亏、胜率、回撤与夏普比率"""

    def __init__(self):
        self._lots: Dict[str, Deque[_Lot]] = {}
        self.closed: List[ClosedTrade] = []
        self.total_trades = 0
        self.total_volume = 0.0

    def record_trade(self, trade: TradeExecution) -> float:
        """
        计入一笔已结束的交易

        Returns:
            本笔交易的已实现盈亏；买入或未成交时为 0.0
        """
        if trade.status is not TradeStatus.FILLED:
            return 0.0

        self.total_trades += 1
        self.total_volume += trade.notional
        lots = self._lots.setdefault(trade.token, deque())

        if trade.action is SignalAction.BUY:
            lots.append(_Lot(quantity=trade.quantity, price=trade.price))
            return 0.0

        remaining = trade.quantity
        matched = 0.0
        cost = 0.0
        while remaining > 0 and lots:
            lot = lots[0]
            take = min(lot.quantity, remaining)
            matched += take
            cost += take * lot.price
            lot.quantity -= take
            remaining -= take
            if lot.quantity <= 1e-12:
                lots.popleft()

        if remaining > 1e-12:
            log.debug(f"[PNL] {trade.token}: {remaining:.6f} 卖出数量没有对应的买入记录")
        if matched <= 0:
            return 0.0

        closed = ClosedTrade(
            token=trade.token,
            quantity=matched,
            cost=cost,
            proceeds=matched * trade.price,
            timestamp=trade.completed_at or trade.timestamp,
        )
        self.closed.append(closed)
        log.info(f"[PNL] {trade.token}: 已实现盈亏 {closed.pnl:+.4f} ({closed.return_fraction * 100:+.2f}%)")
        return closed.pnl

    def open_quantity(self, token: str) -> float:
        return sum(lot.quantity for lot in self._lots.get(token, ()))

    def kelly_inputs(self, min_samples: int = 10) -> Optional[KellyParameters]:
        """样本足够且同时有盈有亏时返回实际的胜率与平均盈亏比例"""
        if len(self.closed) < min_samples:
            return None
        wins = [c.return_fraction for c in self.closed if c.pnl > 0]
        losses = [-c.return_fraction for c in self.closed if c.pnl < 0]
        if not wins or not losses:
            return None
        return KellyParameters(
            win_rate=len(wins) / len(self.closed),
            avg_win=sum(wins) / len(wins),
            avg_loss=sum(losses) / len(losses),
        )

    def daily_pnl(self) -> pd.Series:
        if not self.closed:
            return pd.Series(dtype=float)
        series = pd.Series([c.pnl for c in self.closed],
                           index=pd.DatetimeIndex([c.timestamp for c in self.closed]))
        return daily_totals(series)

    def _max_drawdown(self) -> float:
        peak = 0.0
        cumulative = 0.0
        drawdown = 0.0
        for closed in self.closed:
            cumulative += closed.pnl
            peak = max(peak, cumulative)
            drawdown = max(drawdown, peak - cumulative)
        return drawdown

    def _sharpe_ratio(self, daily: pd.Series) -> float:
        if len(daily) < 2:
            return 0.0
        std = daily.std()
        if not std or math.isnan(std):
            return 0.0
        return float(daily.mean() / std * math.sqrt(TRADING_DAYS_PER_YEAR))

    def get_metrics(self) -> PerformanceMetrics:
        wins = [c for c in self.closed if c.pnl > 0]
        losses = [c for c in self.closed if c.pnl < 0]
        closed_count = len(self.closed)
        daily = self.daily_pnl()

        return PerformanceMetrics(
            total_trades=self.total_trades,
            closed_trades=closed_count,
            winning_trades=len(wins),
            losing_trades=len(losses),
            win_rate=len(wins) / closed_count if closed_count else 0.0,
            avg_win=sum(c.pnl for c in wins) / len(wins) if wins else 0.0,
            avg_loss=sum(-c.pnl for c in losses) / len(losses) if losses else 0.0,
            avg_win_return=sum(c.return_fraction for c in wins) / len(wins) if wins else 0.0,
            avg_loss_return=sum(-c.return_fraction for c in losses) / len(losses) if losses else 0.0,
            total_volume=self.total_volume,
            total_profit=sum(c.pnl for c in self.closed),
            max_drawdown=self._max_drawdown(),
            sharpe_ratio=self._sharpe_ratio(daily),
            daily_pnl={ts.strftime('%Y-%m-%d'): float(v) for ts, v in daily.items()},
        )


class VolumeTracker:
    """成交额统计（计价币），保留最近1000笔成交"""

    def __init__(self, history_size: int = 1000):
        self._trades: Deque[TradeExecution] = deque(maxlen=history_size)
        self.total_volume = 0.0
        self.volume_by_token: Dict[str, float] = {}

    def record_trade(self, trade: TradeExecution):
        if trade.status is not TradeStatus.FILLED:
            return
        volume = trade.notional
        self._trades.append(trade)
        self.total_volume += volume
        self.volume_by_token[trade.token] = self.volume_by_token.get(trade.token, 0.0) + volume
        log.debug(f"[VOLUME] {trade.token}: {volume:.2f} (累计 {self.total_volume:.2f})")

    def _frame(self) -> pd.DataFrame:
        return trades_to_dataframe(self._trades)

    def volume_since(self, since: datetime) -> float:
        df = self._frame()
        if df.empty:
            return 0.0
        return float(df.loc[df['timestamp'] >= since, 'notional'].sum())

    def top_tokens(self, count: int = 5) -> List[str]:
        ranked = sorted(self.volume_by_token.items(), key=lambda item: item[1], reverse=True)
        return [token for token, _ in ranked[:count]]

    def trend(self) -> str:
        """最近10笔与之前10笔的平均成交额比较，变化超过10%视为趋势"""
        notional = self._frame()['notional'] if self._trades else pd.Series(dtype=float)
        if len(notional) <= 10:
            return 'stable'
        recent = notional.iloc[-10:].mean()
        older = notional.iloc[-20:-10].mean()
        if not older > 0:
            return 'stable'
        change = (recent - older) / older
        if change > 0.1:
            return 'increasing'
        if change < -0.1:
            return 'decreasing'
        return 'stable'

    def get_metrics(self, now: Optional[datetime] = None) -> VolumeMetrics:
        now = now or datetime.now()
        df = self._frame()
        notional = df['notional'] if not df.empty else pd.Series(dtype=float)
        return VolumeMetrics(
            total_volume=self.total_volume,
            volume_24h=self.volume_since(now - timedelta(hours=24)),
            volume_1h=self.volume_since(now - timedelta(hours=1)),
            trade_count=len(self._trades),
            average_trade_size=float(notional.mean()) if len(notional) else 0.0,
            peak_trade_size=float(notional.max()) if len(notional) else 0.0,
            trend=self.trend(),
            volume_by_token=dict(self.volume_by_token),
            top_tokens=self.top_tokens(),
        )
