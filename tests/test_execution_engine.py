import asyncio
import unittest

from dexbot.config.config import TradingConfig
from dexbot.config.profiles import DEFAULT_PROFILES
from dexbot.core.types import IllegalTradeTransition, TradeExecution, TradeStatus
from dexbot.execution.exchange import PaperExchange, SwapHandle
from dexbot.execution.execution_engine import ExecutionEngine
from dexbot.models.market_data import TokenInfo
from dexbot.models.strategy_data import SignalAction, TradingSignal
from dexbot.utils.events import EventBus, EventTypes

PROFILES = {p.id: p for p in DEFAULT_PROFILES}
LIVE_PROFILE = PROFILES['aggressive']      # enable_dry_run=False
DRY_PROFILE = PROFILES['balanced']

GUSDC = TokenInfo(symbol="GUSDC", identifier="GUSDC|Unit|none|none", decimals=6)
GALA = TokenInfo(symbol="GALA", identifier="GALA|Unit|none|none", decimals=8)

BUY = TradingSignal(SignalAction.BUY, 0.8, "test buy")
SELL = TradingSignal(SignalAction.SELL, 0.8, "test sell")


class ExplodingExchange(PaperExchange):
    async def submit_swap(self, *args, **kwargs):
        raise ConnectionError("rpc unavailable")


class StuckConfirmationExchange(PaperExchange):
    async def submit_swap(self, *args, **kwargs):
        handle = await super().submit_swap(*args, **kwargs)

        async def never_confirms():
            await asyncio.sleep(10)

        return SwapHandle(handle.tx_hash, never_confirms)


class TestTradeLifecycle(unittest.TestCase):
    def test_single_terminal_transition(self):
        trade = TradeExecution(id="t1", token="GALA", action=SignalAction.BUY,
                               amount=10, confidence=0.5, reason="r")
        trade.fill(0.02, tx_hash="0xabc")
        self.assertEqual(trade.status, TradeStatus.FILLED)
        self.assertAlmostEqual(trade.quantity, 500.0)
        with self.assertRaises(IllegalTradeTransition):
            trade.fail("late")
        with self.assertRaises(IllegalTradeTransition):
            trade.fill(0.03)

    def test_hold_is_not_a_trade(self):
        with self.assertRaises(ValueError):
            TradeExecution(id="t2", token="GALA", action=SignalAction.HOLD,
                           amount=1, confidence=0, reason="r")

    def test_sell_notional(self):
        trade = TradeExecution(id="t3", token="GALA", action=SignalAction.SELL,
                               amount=100, confidence=0.5, reason="r")
        trade.fill(0.05)
        self.assertAlmostEqual(trade.notional, 5.0)
        self.assertEqual(trade.quantity, 100)


class TestExecutionEngine(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.exchange = PaperExchange(GUSDC, [GALA], prices={"GALA": 0.02},
                                      balances={"GUSDC": 1000.0, "GALA": 5000.0})
        self.bus = EventBus()
        self.completed = []
        self.bus.subscribe(EventTypes.TRADE_COMPLETED, lambda e: self.completed.append(e.data['trade']))

    def engine(self, dry_run=False, enable_trading=True, exchange=None):
        config = TradingConfig(dry_run=dry_run, enable_trading=enable_trading)
        return ExecutionEngine(exchange or self.exchange, config, bus=self.bus)

    async def test_dry_run_fills_at_quoted_price(self):
        engine = self.engine(dry_run=True)
        trade = await engine.execute_trade("GALA", BUY, 50.0, LIVE_PROFILE)
        self.assertEqual(trade.status, TradeStatus.FILLED)
        self.assertAlmostEqual(trade.price, 0.02)
        self.assertTrue(trade.tx_hash.startswith("dry-run-"))
        self.assertEqual(self.exchange.swaps, [])

    async def test_profile_dry_run_flag_also_simulates(self):
        engine = self.engine(dry_run=False)
        trade = await engine.execute_trade("GALA", BUY, 50.0, DRY_PROFILE)
        self.assertEqual(trade.status, TradeStatus.FILLED)
        self.assertEqual(self.exchange.swaps, [])

    async def test_trading_disabled_fails_without_external_call(self):
        engine = self.engine(dry_run=False, enable_trading=False)
        trade = await engine.execute_trade("GALA", BUY, 50.0, LIVE_PROFILE)
        self.assertEqual(trade.status, TradeStatus.FAILED)
        self.assertEqual(trade.error, "Trading disabled")
        self.assertEqual(self.exchange.swaps, [])

    async def test_live_buy_swaps_quote_for_token(self):
        engine = self.engine()
        trade = await engine.execute_trade("GALA", BUY, 50.0, LIVE_PROFILE)
        self.assertEqual(trade.status, TradeStatus.FILLED)
        self.assertEqual(trade.tx_hash, self.exchange.swaps[0].tx_hash)
        self.assertAlmostEqual(trade.price, 0.02)
        self.assertAlmostEqual(self.exchange.balances["GUSDC"], 950.0)
        self.assertAlmostEqual(self.exchange.balances["GALA"], 7500.0)

    async def test_live_sell_swaps_token_for_quote(self):
        engine = self.engine()
        trade = await engine.execute_trade("GALA", SELL, 1000.0, LIVE_PROFILE)
        self.assertEqual(trade.status, TradeStatus.FILLED)
        self.assertAlmostEqual(trade.notional, 20.0)
        self.assertAlmostEqual(self.exchange.balances["GUSDC"], 1020.0)

    async def test_collaborator_exception_maps_to_failed(self):
        exchange = ExplodingExchange(GUSDC, [GALA], prices={"GALA": 0.02},
                                     balances={"GUSDC": 1000.0})
        engine = self.engine(exchange=exchange)
        trade = await engine.execute_trade("GALA", BUY, 50.0, LIVE_PROFILE)
        self.assertEqual(trade.status, TradeStatus.FAILED)
        self.assertIn("rpc unavailable", trade.error)

    async def test_cancelled_trade_is_recorded_as_failed(self):
        exchange = StuckConfirmationExchange(GUSDC, [GALA], prices={"GALA": 0.02},
                                             balances={"GUSDC": 1000.0})
        engine = self.engine(exchange=exchange)
        task = asyncio.create_task(engine.execute_trade("GALA", BUY, 50.0, LIVE_PROFILE))
        await asyncio.sleep(0.05)
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task

        history = engine.get_trade_history()
        self.assertEqual([t.status for t in history], [TradeStatus.FAILED])
        self.assertEqual(history[0].error, "cancelled")
        self.assertEqual(engine.get_active_trades(), [])
        self.assertEqual([t.status for t in self.completed], [TradeStatus.FAILED])

    async def test_every_trade_lands_in_history_once(self):
        engine = self.engine()
        await engine.execute_trade("GALA", BUY, 50.0, LIVE_PROFILE)
        await engine.execute_trade("GALA", BUY, 5000.0, LIVE_PROFILE)  # insufficient balance
        await engine.execute_trade("GALA", SELL, 10.0, DRY_PROFILE)

        history = engine.get_trade_history()
        self.assertEqual(len(history), 3)
        self.assertEqual(len({t.id for t in history}), 3)
        self.assertTrue(all(t.status.is_terminal for t in history))
        self.assertEqual([t.status for t in history],
                         [TradeStatus.FILLED, TradeStatus.FAILED, TradeStatus.FILLED])
        self.assertEqual(engine.get_active_trades(), [])
        self.assertEqual(len(self.completed), 3)

        stats = engine.get_trading_stats()
        self.assertEqual(stats.total_trades, 3)
        self.assertEqual(stats.filled_trades, 2)
        self.assertEqual(stats.failed_trades, 1)
        self.assertAlmostEqual(stats.success_rate, 2 / 3)


if __name__ == '__main__':
    unittest.main()
