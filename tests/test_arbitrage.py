import unittest

from dexbot.config.config import ArbitrageConfig
from dexbot.execution.exchange import PaperExchange
from dexbot.models.market_data import FeeTierQuote, TokenInfo
from dexbot.models.strategy_data import SignalAction
from dexbot.strategy.arbitrage import ArbitrageScanner

GUSDC = TokenInfo(symbol="GUSDC", identifier="GUSDC|Unit|none|none", decimals=6)
GALA = TokenInfo(symbol="GALA", identifier="GALA|Unit|none|none", decimals=8)


class FailingExchange(PaperExchange):
    async def quote(self, token_in, token_out, amount_in, fee_tier):
        raise RuntimeError("network down")


class TestArbitrageEvaluate(unittest.TestCase):
    def test_spread_above_threshold_buys(self):
        quotes = [FeeTierQuote(500, 1.0), FeeTierQuote(3000, 1.01)]
        signal = ArbitrageScanner.evaluate(quotes, threshold_pct=0.5)
        self.assertEqual(signal.action, SignalAction.BUY)
        self.assertAlmostEqual(signal.confidence, 0.5)
        self.assertAlmostEqual(signal.target_price, 1.01)
        self.assertEqual(signal.details['best_fee_tier'], 3000)

    def test_confidence_capped_at_one(self):
        quotes = [FeeTierQuote(100, 1.0), FeeTierQuote(500, 1.05)]
        self.assertEqual(ArbitrageScanner.evaluate(quotes).confidence, 1.0)

    def test_small_spread_holds(self):
        quotes = [FeeTierQuote(500, 1.0), FeeTierQuote(3000, 1.002)]
        signal = ArbitrageScanner.evaluate(quotes, threshold_pct=0.5)
        self.assertEqual(signal.action, SignalAction.HOLD)
        self.assertEqual(signal.confidence, 0.0)

    def test_needs_two_quotes(self):
        self.assertEqual(ArbitrageScanner.evaluate([]).action, SignalAction.HOLD)
        signal = ArbitrageScanner.evaluate([FeeTierQuote(500, 1.0)])
        self.assertEqual(signal.action, SignalAction.HOLD)
        self.assertEqual(signal.confidence, 0.0)


class TestArbitrageScan(unittest.IsolatedAsyncioTestCase):
    async def test_missing_pools_are_skipped(self):
        exchange = PaperExchange(GUSDC, [GALA], prices={"GALA": 0.02},
                                 spreads={500: 0.0, 3000: 0.02})
        scanner = ArbitrageScanner(exchange, "GUSDC", ArbitrageConfig())

        quotes = await scanner.fetch_quotes("GALA")
        self.assertEqual(sorted(q.fee_tier for q in quotes), [500, 3000])

        signal = await scanner.scan("GALA")
        self.assertEqual(signal.action, SignalAction.BUY)
        self.assertAlmostEqual(signal.confidence, 1.0)

    async def test_quote_failures_mean_no_data(self):
        exchange = FailingExchange(GUSDC, [GALA], prices={"GALA": 0.02})
        scanner = ArbitrageScanner(exchange, "GUSDC")
        signal = await scanner.scan("GALA")
        self.assertEqual(signal.action, SignalAction.HOLD)
        self.assertEqual(signal.confidence, 0.0)

    async def test_threshold_is_configurable(self):
        exchange = PaperExchange(GUSDC, [GALA], prices={"GALA": 0.02},
                                 spreads={500: 0.0, 3000: 0.02})
        scanner = ArbitrageScanner(exchange, "GUSDC", ArbitrageConfig(threshold_pct=5.0))
        signal = await scanner.scan("GALA")
        self.assertEqual(signal.action, SignalAction.HOLD)


if __name__ == '__main__':
    unittest.main()
