"""
交易所协作方接口
核心逻辑只通过 ExchangeConnector 获取报价、余额和提交兑换；PaperExchange 为内存模拟实现
"""

import asyncio
import itertools
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from dexbot.core.types import SwapResult
from dexbot.models.market_data import TokenInfo
from dexbot.utils.log import setup_logging

log = setup_logging(module_prefix='EXECUTION')


class QuoteUnavailable(Exception):
    """该费率档位没有流动性池"""


class InsufficientBalance(Exception):
    pass


class SwapHandle:
    """已提交的兑换，wait() 等待链上确认"""

    def __init__(self, tx_hash: str, confirm: Callable[[], Awaitable[SwapResult]]):
        self.tx_hash = tx_hash
        self._confirm = confirm

    async def wait(self) -> SwapResult:
        return await self._confirm()


class ExchangeConnector(ABC):
    """交易所连接抽象"""

    @abstractmethod
    async def list_supported_tokens(self) -> List[TokenInfo]:
        ...

    @abstractmethod
    async def quote(self, token_in: str, token_out: str, amount_in: float, fee_tier: int) -> float:
        """返回 amount_in 个 token_in 可以换到的 token_out 数量；无池时抛出 QuoteUnavailable"""

    @abstractmethod
    async def get_balance(self, token: str) -> float:
        ...

    @abstractmethod
    async def submit_swap(self, token_in: str, token_out: str, fee_tier: int,
                          amount_in: float, min_amount_out: float) -> SwapHandle:
        ...

    async def fetch_volume(self, token: str) -> Optional[float]:
        """最近成交量；不支持时返回 None"""
        return None


class PaperExchange(ExchangeConnector):
    """
    内存中的模拟交易所

    prices 以计价币计；spreads 为各费率档位相对中间价的偏移，
    只有出现在 spreads 中的档位才有流动性池。
    """

    def __init__(self, quote_token: TokenInfo, tokens: Iterable[TokenInfo] = (),
                 prices: Optional[Dict[str, float]] = None,
                 balances: Optional[Dict[str, float]] = None,
                 spreads: Optional[Dict[int, float]] = None,
                 latency: float = 0.0):
        self.quote_token = quote_token
        self.tokens: Dict[str, TokenInfo] = {t.symbol: t for t in tokens}
        self.prices: Dict[str, float] = dict(prices or {})
        self.balances: Dict[str, float] = dict(balances or {})
        self.spreads: Dict[int, float] = dict(spreads if spreads is not None else {500: 0.0})
        self.volumes: Dict[str, float] = {}
        self.latency = latency
        self.swaps: List[SwapResult] = []
        self._tx_counter = itertools.count(1)

    def set_price(self, token: str, price: float, volume: Optional[float] = None):
        self.prices[token] = price
        if volume is not None:
            self.volumes[token] = volume

    def _mid_price(self, token: str) -> float:
        if token == self.quote_token.symbol:
            return 1.0
        price = self.prices.get(token)
        if price is None:
            raise QuoteUnavailable(f"no market for {token}")
        return price

    async def list_supported_tokens(self) -> List[TokenInfo]:
        return list(self.tokens.values())

    async def quote(self, token_in: str, token_out: str, amount_in: float, fee_tier: int) -> float:
        if self.latency:
            await asyncio.sleep(self.latency)
        if fee_tier not in self.spreads:
            raise QuoteUnavailable(f"no pool for {token_in}/{token_out} at fee tier {fee_tier}")
        rate = self._mid_price(token_in) / self._mid_price(token_out)
        return amount_in * rate * (1 + self.spreads[fee_tier])

    async def get_balance(self, token: str) -> float:
        return self.balances.get(token, 0.0)

    async def submit_swap(self, token_in: str, token_out: str, fee_tier: int,
                          amount_in: float, min_amount_out: float) -> SwapHandle:
        if self.balances.get(token_in, 0.0) < amount_in:
            raise InsufficientBalance(f"{token_in} balance below {amount_in}")

        amount_out = await self.quote(token_in, token_out, amount_in, fee_tier)
        if amount_out < min_amount_out:
            raise ValueError(f"slippage exceeded: {amount_out:.6f} < {min_amount_out:.6f}")

        tx_hash = f"paper-{next(self._tx_counter):06d}"
        self.balances[token_in] = self.balances.get(token_in, 0.0) - amount_in
        self.balances[token_out] = self.balances.get(token_out, 0.0) + amount_out

        # 价格统一表示为每个非计价代币的计价币数量
        if token_in == self.quote_token.symbol:
            price = amount_in / amount_out
        else:
            price = amount_out / amount_in
        result = SwapResult(tx_hash=tx_hash, amount_in=amount_in, amount_out=amount_out, price=price)
        self.swaps.append(result)
        log.debug(f"[PAPER] {tx_hash}: {amount_in:.6f} {token_in} -> {amount_out:.6f} {token_out}")

        async def confirm() -> SwapResult:
            if self.latency:
                await asyncio.sleep(self.latency)
            return result

        return SwapHandle(tx_hash, confirm)

    async def fetch_volume(self, token: str) -> Optional[float]:
        return self.volumes.get(token)
