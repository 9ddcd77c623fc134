"""
多策略 DEX 交易机器人
周期性评估每个代币：策略信号 → 加权合成 → 风控与仓位 → 执行
"""

import asyncio
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from dexbot.config.config import TradingConfig
from dexbot.config.profile_manager import ProfileManager
from dexbot.config.profiles import TradingProfile
from dexbot.core.types import TradeExecution, TradeStatus
from dexbot.execution.exchange import ExchangeConnector, PaperExchange
from dexbot.execution.execution_engine import ExecutionEngine
from dexbot.models.market_data import TokenInfo
from dexbot.models.strategy_data import SignalAction, TokenAnalysis, TradingSignal
from dexbot.monitor.data import (
    EngineSnapshot,
    PerformanceMetrics,
    SystemStatus,
    TradingStats,
    VolumeMetrics,
)
from dexbot.monitor.performance import PerformanceTracker, VolumeTracker
from dexbot.risk.position_sizer import PositionSizer
from dexbot.risk.risk_manager import RiskManager, RiskMetrics
from dexbot.strategy.dca_strategy import DCAPosition
from dexbot.strategy.strategy_engine import StrategyEngine
from dexbot.utils.data_transforms import format_timestamp
from dexbot.utils.events import Event, EventBus, EventTypes, event_bus
from dexbot.utils.log import configure_handler, setup_logging

log = setup_logging(module_prefix='ENGINE')


class TradingEngine:
    """交易引擎 - 单实例、单写者的评估循环"""

    def __init__(self, connector: ExchangeConnector, config: Optional[TradingConfig] = None,
                 profiles: Optional[ProfileManager] = None, bus: Optional[EventBus] = None,
                 now: Callable[[], datetime] = datetime.now):
        self.config = config or TradingConfig.create()
        self.connector = connector
        self.bus = bus or event_bus
        self.now = now

        self.profiles = profiles or ProfileManager(profiles_file=self.config.profiles_file,
                                                   initial_profile=self.config.profile,
                                                   bus=self.bus)
        self.strategy = StrategyEngine(connector, self.config, bus=self.bus)
        self.risk = RiskManager(self.config.risk)
        self.sizer = PositionSizer(self.config.risk)
        self.execution = ExecutionEngine(connector, self.config, bus=self.bus)
        self.performance = PerformanceTracker()
        self.volume = VolumeTracker()

        self.status = SystemStatus.STOPPED
        self.cycles_completed = 0
        self.last_cycle_at: Optional[datetime] = None
        self.started_at: Optional[datetime] = None
        self.tokens: List[str] = []

        self._cycle_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._running = False
        self._task: Optional[asyncio.Task] = None

        self.bus.subscribe(EventTypes.TRADE_COMPLETED, self._on_trade_completed)

    def _on_trade_completed(self, event: Event):
        trade: TradeExecution = event.data['trade']
        if trade.status is not TradeStatus.FILLED:
            return
        pnl = self.performance.record_trade(trade)
        self.volume.record_trade(trade)
        self.risk.update_metrics(pnl, trade.completed_at)

    async def _resolve_tokens(self) -> List[str]:
        """交易所支持的代币（排除计价币），可由配置的 tokens 过滤"""
        try:
            supported: List[TokenInfo] = await self.connector.list_supported_tokens()
        except Exception as e:
            log.error(f"[TOKENS] 获取代币列表失败: {e}")
            return self.tokens

        quote = self.config.quote_token.symbol
        symbols = [t.symbol for t in supported if t.symbol != quote]
        if self.config.tokens:
            wanted = set(self.config.tokens)
            symbols = [s for s in symbols if s in wanted]
        self.tokens = symbols
        return symbols

    async def _balances(self, token: str) -> Tuple[float, float]:
        """(计价币余额, 代币余额)；查询失败视为 0"""
        try:
            quote_balance = await self.connector.get_balance(self.config.quote_token.symbol)
            token_balance = await self.connector.get_balance(token)
        except Exception as e:
            log.error(f"[BALANCE] {token} 余额查询失败: {e}")
            return 0.0, 0.0
        return float(quote_balance or 0.0), float(token_balance or 0.0)

    async def _process_token(self, token: str, profile: TradingProfile) -> Optional[TokenAnalysis]:
        analysis = await self.strategy.analyze_token(token, profile)
        if analysis is None or not analysis.combined.is_actionable:
            return analysis

        signal: TradingSignal = analysis.combined
        quote_balance, token_balance = await self._balances(token)
        # SELL 以持仓市值作为可用余额
        if signal.action is SignalAction.BUY:
            balance = quote_balance
        else:
            balance = token_balance * analysis.price

        now = self.now()
        decision = self.risk.should_execute(signal, token, balance, profile, now)
        if not decision:
            log.info(f"[RISK] {token}: 拒绝 {signal.action.value} ({decision.reason})")
            return analysis

        stats = self.performance.kelly_inputs(self.config.risk.min_samples)
        size = self.sizer.calculate(signal, balance, profile, stats)
        if size <= 0:
            return analysis

        if signal.action is SignalAction.BUY:
            amount = size
        else:
            amount = min(size / analysis.price, token_balance)

        self.risk.record_trade(token, now)
        await self.execution.execute_trade(token, signal, amount, profile)
        return analysis

    async def run_cycle(self) -> Optional[List[TokenAnalysis]]:
        """
        执行一轮评估

        同一时间只允许一轮；重入的调用直接返回 None。
        档案在本轮开始时取一次快照，中途切换从下一轮生效。
        """
        if self._cycle_lock.locked():
            log.warning("[CYCLE] 上一轮评估仍在进行，跳过本次触发")
            return None

        async with self._cycle_lock:
            profile = self.profiles.current()
            tokens = await self._resolve_tokens()
            log.info(f"[CYCLE] 开始第 {self.cycles_completed + 1} 轮评估: "
                     f"{len(tokens)} 个代币, 档案 {profile.id}")

            analyses = []
            for token in tokens:
                try:
                    analysis = await self._process_token(token, profile)
                except Exception as e:
                    log.error(f"[CYCLE] {token} 处理失败: {e}")
                    self.bus.publish(EventTypes.ERROR_OCCURRED, {'token': token, 'error': str(e)},
                                     source='TradingEngine')
                    continue
                if analysis is not None:
                    analyses.append(analysis)

            self.cycles_completed += 1
            self.last_cycle_at = self.now()
            self.bus.publish(EventTypes.CYCLE_COMPLETED, {
                'cycle': self.cycles_completed,
                'profile': profile.id,
                'tokens': len(tokens),
                'signals': sum(1 for a in analyses if a.combined.is_actionable),
            }, source='TradingEngine')
            log.info(f"[CYCLE] 第 {self.cycles_completed} 轮完成 "
                     f"({format_timestamp(self.last_cycle_at)})")
            return analyses

    async def _run_loop(self):
        while self._running:
            try:
                await self.run_cycle()
            except Exception as e:
                log.error(f"[CYCLE] 评估循环异常: {e}")
                self.status = SystemStatus.ERROR
            else:
                if self.status is SystemStatus.ERROR:
                    self.status = SystemStatus.RUNNING

            if not self._running:
                break
            interval = self.profiles.current().scan_interval_seconds
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    async def start(self):
        """启动评估循环（需在事件循环中调用）"""
        if self._running:
            log.warning("[ENGINE] 交易引擎已在运行")
            return
        self.status = SystemStatus.STARTING
        log.info("[ENGINE] 启动交易引擎...")
        log.info(self.profiles.summary())

        self._running = True
        self._stop_event.clear()
        self.started_at = self.now()
        self._task = asyncio.create_task(self._run_loop())
        self.status = SystemStatus.RUNNING
        self.bus.publish(EventTypes.SYSTEM_STARTED, {'profile': self.profiles.current_id},
                         source='TradingEngine')

    async def stop(self):
        """停止调度下一轮；正在进行的一轮会正常完成"""
        if not self._running:
            return
        log.info("[ENGINE] 停止交易引擎...")
        self._running = False
        self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
        self.status = SystemStatus.STOPPED
        self.bus.publish(EventTypes.SYSTEM_STOPPED, {'cycles': self.cycles_completed},
                         source='TradingEngine')
        log.info("[ENGINE] 交易引擎已停止")

    def close(self):
        self.bus.unsubscribe(EventTypes.TRADE_COMPLETED, self._on_trade_completed)

    @property
    def is_running(self) -> bool:
        return self._running

    def switch_profile(self, profile_id: str) -> bool:
        """切换档案，从下一轮评估开始生效"""
        return self.profiles.switch(profile_id)

    def get_current_profile(self) -> TradingProfile:
        return self.profiles.current()

    def get_all_profiles(self) -> List[TradingProfile]:
        return self.profiles.list()

    def get_active_trades(self) -> List[TradeExecution]:
        return self.execution.get_active_trades()

    def get_trade_history(self) -> List[TradeExecution]:
        return self.execution.get_trade_history()

    def get_trading_stats(self) -> TradingStats:
        return self.execution.get_trading_stats()

    def get_performance_metrics(self) -> PerformanceMetrics:
        return self.performance.get_metrics()

    def get_volume_metrics(self) -> VolumeMetrics:
        return self.volume.get_metrics(self.now())

    def get_risk_metrics(self) -> RiskMetrics:
        return self.risk.get_risk_metrics(self.now())

    def get_dca_positions(self) -> List[DCAPosition]:
        return self.strategy.get_dca_positions()

    def get_snapshot(self) -> EngineSnapshot:
        now = self.now()
        profile = self.profiles.current()
        uptime = int((now - self.started_at).total_seconds()) if self.started_at and self._running else 0
        return EngineSnapshot(
            timestamp=now,
            system_status=self.status,
            profile_id=profile.id,
            profile_name=profile.name,
            tokens=list(self.tokens),
            cycles_completed=self.cycles_completed,
            last_cycle_at=self.last_cycle_at,
            active_trades=len(self.execution.get_active_trades()),
            trading=self.get_trading_stats(),
            performance=self.get_performance_metrics(),
            volume=self.get_volume_metrics(),
            dca_positions=len(self.get_dca_positions()),
            uptime_seconds=uptime,
        )


def build_paper_exchange(config: TradingConfig) -> PaperExchange:
    """根据配置中的 paper 段构造模拟交易所"""
    tokens = [TokenInfo(symbol=symbol, identifier=f"{symbol}|Unit|none|none", decimals=8)
              for symbol in config.paper.prices]
    return PaperExchange(
        quote_token=config.quote_token,
        tokens=tokens,
        prices=config.paper.prices,
        balances=config.paper.balances,
        spreads={int(tier): spread for tier, spread in config.paper.spreads.items()},
    )


async def run(config: TradingConfig):
    engine = TradingEngine(build_paper_exchange(config), config)
    await engine.start()
    try:
        await asyncio.Event().wait()
    finally:
        await engine.stop()
        engine.close()


def main():
    config = TradingConfig.create()
    configure_handler(level=config.log_level)
    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        log.info("收到停止信号...")


if __name__ == "__main__":
    main()
