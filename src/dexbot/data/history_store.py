"""
历史数据存储 - 每个代币一组固定容量的环形缓冲区
所有策略都从这里读取价格/成交量序列
"""

import threading
from datetime import datetime
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from dexbot.models.market_data import Observation
from dexbot.utils.data_transforms import observations_to_dataframe
from dexbot.utils.log import setup_logging

log = setup_logging(module_prefix='DATA')

DEFAULT_PRICE_CAPACITY = 100
DEFAULT_VOLUME_CAPACITY = 100


class RingBuffer:
    """numpy数组 + 写指针实现的定长缓冲区，写满后覆盖最旧的数据"""

    def __init__(self, capacity: int, dtype=float):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._data = np.empty(capacity, dtype=dtype)
        self._next = 0
        self._size = 0

    def append(self, value):
        self._data[self._next] = value
        self._next = (self._next + 1) % self.capacity
        if self._size < self.capacity:
            self._size += 1

    def values(self) -> np.ndarray:
        """按时间顺序（旧 -> 新）返回数据副本"""
        if self._size < self.capacity:
            return self._data[:self._size].copy()
        return np.concatenate((self._data[self._next:], self._data[:self._next]))

    def last(self):
        if self._size == 0:
            return None
        return self._data[(self._next - 1) % self.capacity]

    def clear(self):
        self._next = 0
        self._size = 0

    def __len__(self) -> int:
        return self._size


class _TokenHistory:
    def __init__(self, price_capacity: int, volume_capacity: int):
        self.prices = RingBuffer(price_capacity)
        self.timestamps = RingBuffer(price_capacity, dtype=object)
        self.volumes = RingBuffer(volume_capacity)


class HistoryStore:
    """按代币保存最近的价格与成交量观测"""

    def __init__(self, price_capacity: int = DEFAULT_PRICE_CAPACITY,
                 volume_capacity: int = DEFAULT_VOLUME_CAPACITY):
        self.price_capacity = price_capacity
        self.volume_capacity = volume_capacity
        self._histories: Dict[str, _TokenHistory] = {}
        self.lock = threading.Lock()

    def record(self, token: str, price: float, volume: Optional[float] = None,
               timestamp: Optional[datetime] = None):
        """追加一次观测；没有成交量数据时只记录价格"""
        with self.lock:
            history = self._histories.get(token)
            if history is None:
                history = _TokenHistory(self.price_capacity, self.volume_capacity)
                self._histories[token] = history
                log.debug(f"[HISTORY] {token}: 创建历史缓冲区")

            history.prices.append(price)
            history.timestamps.append(timestamp or datetime.now())
            if volume is not None:
                history.volumes.append(volume)

    def series(self, token: str) -> np.ndarray:
        """价格序列，旧 -> 新"""
        with self.lock:
            history = self._histories.get(token)
            return history.prices.values() if history else np.empty(0)

    def volumes(self, token: str) -> np.ndarray:
        """成交量序列，旧 -> 新"""
        with self.lock:
            history = self._histories.get(token)
            return history.volumes.values() if history else np.empty(0)

    def observations(self, token: str) -> List[Observation]:
        with self.lock:
            history = self._histories.get(token)
            if history is None:
                return []
            prices = history.prices.values()
            stamps = history.timestamps.values()
        return [Observation(price=float(p), timestamp=t) for p, t in zip(prices, stamps)]

    def frame(self, token: str) -> pd.DataFrame:
        """以DataFrame形式返回价格历史（时间索引）"""
        return observations_to_dataframe(self.observations(token))

    def latest(self, token: str) -> Optional[float]:
        with self.lock:
            history = self._histories.get(token)
            if history is None:
                return None
            last = history.prices.last()
            return float(last) if last is not None else None

    def tokens(self) -> List[str]:
        with self.lock:
            return list(self._histories.keys())

    def clear(self, token: str = None):
        with self.lock:
            if token is None:
                self._histories.clear()
            else:
                self._histories.pop(token, None)
