"""
执行引擎 - 交易生命周期管理
从通过风控的信号到交易所兑换的桥梁，每笔交易 PENDING -> FILLED | FAILED 后进入历史记录
"""

import itertools
import uuid
from typing import Dict, List, Optional

from dexbot.config.config import TradingConfig
from dexbot.config.profiles import TradingProfile
from dexbot.core.types import TradeExecution, TradeStatus
from dexbot.execution.exchange import ExchangeConnector
from dexbot.models.strategy_data import SignalAction, TradingSignal
from dexbot.monitor.data import TradingStats
from dexbot.utils.events import EventBus, EventTypes, event_bus
from dexbot.utils.log import setup_logging

log = setup_logging(module_prefix='EXECUTION')

SWAP_FEE_TIER = 500


class ExecutionEngine:
    """
    执行引擎 - 负责把信号变成兑换
    不做自动重试，失败的交易不会重新进入流水线
    """

    def __init__(self, connector: ExchangeConnector, config: Optional[TradingConfig] = None,
                 bus: Optional[EventBus] = None):
        self.connector = connector
        self.config = config or TradingConfig()
        self.bus = bus or event_bus
        self.quote_symbol = self.config.quote_token.symbol

        self._active: Dict[str, TradeExecution] = {}
        self._history: List[TradeExecution] = []
        self._counter = itertools.count(1)

    def _new_trade_id(self) -> str:
        return f"trade_{next(self._counter)}_{uuid.uuid4().hex[:8]}"

    def is_dry_run(self, profile: TradingProfile) -> bool:
        return self.config.dry_run or profile.trading.enable_dry_run

    async def execute_trade(self, token: str, signal: TradingSignal, amount: float,
                            profile: TradingProfile) -> TradeExecution:
        """
        执行一笔交易

        Args:
            token: 代币符号
            signal: 已通过风控的合成信号
            amount: BUY 为花费的计价币数量，SELL 为卖出的代币数量
            profile: 本轮档案快照（滑点与模拟交易开关）

        Returns:
            已结束 (FILLED/FAILED) 的交易记录
        """
        trade = TradeExecution(
            id=self._new_trade_id(),
            token=token,
            action=signal.action,
            amount=amount,
            confidence=signal.confidence,
            reason=signal.reason,
        )
        self._active[trade.id] = trade
        log.info(f"[TRADE] {trade.id}: {trade.action.value} {token} amount={amount:.6f} "
                 f"(置信度 {signal.confidence:.2f})")

        try:
            if self.is_dry_run(profile):
                await self._simulate(trade)
            elif not self.config.enable_trading:
                trade.fail("Trading disabled")
                log.warning(f"[TRADE] {trade.id}: 交易未启用，跳过执行")
            else:
                await self._swap(trade, profile)
        except Exception as e:
            if not trade.status.is_terminal:
                trade.fail(str(e))
            log.error(f"[TRADE] {trade.id}: 执行失败 - {e}")
        finally:
            # 任务被取消 (CancelledError) 时交易仍处于 PENDING
            if not trade.status.is_terminal:
                trade.fail("cancelled")
                log.warning(f"[TRADE] {trade.id}: 执行被取消")
            self._active.pop(trade.id, None)
            self._history.append(trade)
            self.bus.publish(EventTypes.TRADE_COMPLETED, {'trade': trade}, source='ExecutionEngine')

        return trade

    async def _simulate(self, trade: TradeExecution):
        """模拟成交：按当前报价填写价格"""
        price = await self.connector.quote(trade.token, self.quote_symbol, 1, SWAP_FEE_TIER)
        if not price or price <= 0:
            raise ValueError(f"invalid quote {price} for {trade.token}")
        trade.fill(price, tx_hash=f"dry-run-{trade.id}")
        log.info(f"[DRY RUN] {trade.id}: 模拟成交 {trade.action.value} {trade.token} @ {price:.6f}")

    async def _swap(self, trade: TradeExecution, profile: TradingProfile):
        """报价 -> 提交兑换 -> 等待确认"""
        if trade.action is SignalAction.BUY:
            token_in, token_out = self.quote_symbol, trade.token
        else:
            token_in, token_out = trade.token, self.quote_symbol

        expected = await self.connector.quote(token_in, token_out, trade.amount, SWAP_FEE_TIER)
        if not expected or expected <= 0:
            raise ValueError(f"invalid quote {expected} for {token_in}->{token_out}")
        min_out = expected * (1 - profile.trading.max_slippage)

        handle = await self.connector.submit_swap(token_in, token_out, SWAP_FEE_TIER,
                                                  trade.amount, min_out)
        log.info(f"[TRADE] {trade.id}: 已提交 {handle.tx_hash}，等待确认")
        result = await handle.wait()

        trade.fill(result.price, tx_hash=result.tx_hash)
        log.info(f"[TRADE] {trade.id}: 成交 {result.amount_in:.6f} {token_in} -> "
                 f"{result.amount_out:.6f} {token_out} @ {result.price:.6f}")

    def get_active_trades(self) -> List[TradeExecution]:
        return list(self._active.values())

    def get_trade_history(self) -> List[TradeExecution]:
        return list(self._history)

    def get_trading_stats(self) -> TradingStats:
        filled = [t for t in self._history if t.status is TradeStatus.FILLED]
        failed = sum(1 for t in self._history if t.status is TradeStatus.FAILED)
        total = len(self._history)
        return TradingStats(
            total_trades=total,
            filled_trades=len(filled),
            failed_trades=failed,
            active_trades=len(self._active),
            success_rate=len(filled) / total if total else 0.0,
            total_volume=sum(t.notional for t in filled),
            buy_trades=sum(1 for t in filled if t.action is SignalAction.BUY),
            sell_trades=sum(1 for t in filled if t.action is SignalAction.SELL),
        )
