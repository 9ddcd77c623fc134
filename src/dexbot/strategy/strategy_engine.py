"""
策略引擎 - 协调单个代币的策略流水线
处理：报价 → 记录历史 → 各策略评估 → 加权合成
"""

from typing import Awaitable, Callable, Dict, List, Optional

from dexbot.config.config import TradingConfig
from dexbot.config.profiles import TradingProfile
from dexbot.data.history_store import HistoryStore
from dexbot.execution.exchange import ExchangeConnector
from dexbot.models.strategy_data import StrategyName, TokenAnalysis, TradingSignal
from dexbot.strategy.arbitrage import ArbitrageScanner
from dexbot.strategy.dca_strategy import DCAPosition, DCAStrategy
from dexbot.strategy.indicators import IndicatorAnalyzer
from dexbot.strategy.signal_combiner import combine_signals
from dexbot.utils.events import EventBus, EventTypes, event_bus
from dexbot.utils.log import setup_logging

log = setup_logging(module_prefix='STRATEGY')

PRICE_FEE_TIER = 500

Evaluator = Callable[[str, float], Awaitable[TradingSignal]]


class StrategyEngine:
    """
    策略引擎 - 持有每个代币的价格历史和定投仓位
    策略集合固定，通过 StrategyName -> 评估函数 的分派表调用
    """

    def __init__(self, connector: ExchangeConnector, config: Optional[TradingConfig] = None,
                 dca: Optional[DCAStrategy] = None, bus: Optional[EventBus] = None):
        self.connector = connector
        self.config = config or TradingConfig()
        self.bus = bus or event_bus
        self.quote_symbol = self.config.quote_token.symbol

        self.history = HistoryStore(price_capacity=self.config.history.price_capacity,
                                    volume_capacity=self.config.history.volume_capacity)
        self.dca = dca or DCAStrategy()
        self.arbitrage = ArbitrageScanner(connector, self.quote_symbol, self.config.arbitrage)

        self.evaluators: Dict[StrategyName, Evaluator] = {
            StrategyName.ARBITRAGE: self._evaluate_arbitrage,
            StrategyName.MOMENTUM: self._evaluate_momentum,
            StrategyName.VOLUME: self._evaluate_volume,
            StrategyName.TREND: self._evaluate_trend,
            StrategyName.BOLLINGER_BANDS: self._evaluate_bollinger,
            StrategyName.FIBONACCI: self._evaluate_fibonacci,
            StrategyName.DCA: self._evaluate_dca,
        }

    async def get_current_price(self, token: str) -> Optional[float]:
        """1个代币在 0.05% 档位可换到的计价币数量；失败时返回 None"""
        try:
            price = await self.connector.quote(token, self.quote_symbol, 1, PRICE_FEE_TIER)
        except Exception as e:
            log.error(f"[PRICE] {token} 报价失败: {e}")
            return None
        if not price or price <= 0:
            log.warning(f"[PRICE] {token} 报价无效: {price}")
            return None
        return float(price)

    async def _fetch_volume(self, token: str) -> Optional[float]:
        try:
            return await self.connector.fetch_volume(token)
        except Exception as e:
            log.debug(f"[VOLUME] {token} 成交量获取失败: {e}")
            return None

    async def analyze_token(self, token: str, profile: TradingProfile) -> Optional[TokenAnalysis]:
        """
        执行单个代币的完整策略流水线

        Args:
            token: 代币符号
            profile: 本轮评估使用的档案快照

        Returns:
            TokenAnalysis，无法获得价格时返回 None
        """
        price = await self.get_current_price(token)
        if price is None:
            return None

        volume = await self._fetch_volume(token)
        self.history.record(token, price, volume)

        signals: Dict[StrategyName, TradingSignal] = {}
        for name in profile.enabled_strategies.enabled():
            try:
                signals[name] = await self.evaluators[name](token, price)
            except Exception as e:
                log.error(f"[STRATEGY] {token} {name.value} 评估失败: {e}")
                signals[name] = TradingSignal.hold(f"{name.value} evaluation failed", name)

        combined = combine_signals(signals, profile.strategy_weights, profile.enabled_strategies)
        analysis = TokenAnalysis(symbol=token, price=price, signals=signals, combined=combined)

        log.debug(f"[ANALYSIS] {token} @ {price:.6f}: "
                  + ", ".join(f"{n.value}={s.action.value}/{s.confidence:.2f}" for n, s in signals.items()))

        if combined.is_actionable:
            log.info(f"[SIGNAL] {token}: {combined.action.value} "
                     f"(置信度 {combined.confidence:.2f}) - {combined.reason}")
            self.bus.publish(EventTypes.SIGNAL_GENERATED, {
                'token': token,
                'price': price,
                'action': combined.action.value,
                'confidence': combined.confidence,
                'reason': combined.reason,
                'profile': profile.id,
            }, source='StrategyEngine')

        return analysis

    async def _evaluate_arbitrage(self, token: str, price: float) -> TradingSignal:
        return await self.arbitrage.scan(token)

    async def _evaluate_momentum(self, token: str, price: float) -> TradingSignal:
        return IndicatorAnalyzer.momentum(self.history.series(token))

    async def _evaluate_volume(self, token: str, price: float) -> TradingSignal:
        return IndicatorAnalyzer.volume_spike(self.history.volumes(token))

    async def _evaluate_trend(self, token: str, price: float) -> TradingSignal:
        return IndicatorAnalyzer.trend(self.history.series(token))

    async def _evaluate_bollinger(self, token: str, price: float) -> TradingSignal:
        return IndicatorAnalyzer.bollinger_bands(self.history.series(token))

    async def _evaluate_fibonacci(self, token: str, price: float) -> TradingSignal:
        return IndicatorAnalyzer.fibonacci(self.history.series(token))

    async def _evaluate_dca(self, token: str, price: float) -> TradingSignal:
        return self.dca.evaluate(token, price)

    def get_dca_positions(self) -> List[DCAPosition]:
        return self.dca.get_all_positions()
