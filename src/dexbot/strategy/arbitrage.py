"""
跨费率档位套利扫描
同一交易对在不同费率池中的报价差异超过阈值时给出买入信号
"""

from typing import List, Optional, Sequence

from dexbot.config.config import ArbitrageConfig
from dexbot.execution.exchange import ExchangeConnector
from dexbot.models.market_data import FeeTierQuote
from dexbot.models.strategy_data import SignalAction, StrategyName, TradingSignal
from dexbot.utils.log import setup_logging

log = setup_logging(module_prefix='STRATEGY')

MIN_QUOTES = 2


class ArbitrageScanner:
    """对每个费率档位报价并比较"""

    def __init__(self, connector: ExchangeConnector, quote_symbol: str,
                 config: Optional[ArbitrageConfig] = None):
        self.connector = connector
        self.quote_symbol = quote_symbol
        self.config = config or ArbitrageConfig()

    async def fetch_quotes(self, token: str) -> List[FeeTierQuote]:
        """逐个档位报价；没有池或请求失败的档位直接跳过"""
        quotes = []
        amount = self.config.quote_amount
        for fee_tier in self.config.fee_tiers:
            try:
                amount_out = await self.connector.quote(token, self.quote_symbol, amount, fee_tier)
            except Exception as e:
                log.debug(f"[ARBITRAGE] {token} 费率 {fee_tier} 报价失败: {e}")
                continue
            if amount_out and amount_out > 0:
                quotes.append(FeeTierQuote(fee_tier=fee_tier, price=amount_out / amount))
        return quotes

    async def scan(self, token: str) -> TradingSignal:
        quotes = await self.fetch_quotes(token)
        return self.evaluate(quotes, self.config.threshold_pct)

    @staticmethod
    def evaluate(quotes: Sequence[FeeTierQuote], threshold_pct: float = 0.5) -> TradingSignal:
        """纯函数：根据各档位报价计算价差信号"""
        source = StrategyName.ARBITRAGE
        if len(quotes) < MIN_QUOTES:
            return TradingSignal.hold("Insufficient arbitrage data", source, quotes=len(quotes))

        best = max(quotes, key=lambda q: q.price)
        worst = min(quotes, key=lambda q: q.price)
        diff_pct = (best.price - worst.price) / worst.price * 100
        details = {
            'diff_pct': diff_pct,
            'best_fee_tier': best.fee_tier,
            'worst_fee_tier': worst.fee_tier,
        }

        if diff_pct > threshold_pct:
            return TradingSignal(
                action=SignalAction.BUY,
                confidence=min(diff_pct / 2, 1.0),
                reason=f"Arbitrage opportunity: {diff_pct:.2f}% price difference between fee tiers",
                target_price=best.price,
                source=source,
                details=details,
            )
        return TradingSignal.hold("No significant arbitrage opportunity", source, **details)
