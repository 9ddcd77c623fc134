"""
数据转换纯函数
所有的数据格式转换逻辑都应该是纯函数
"""

from datetime import datetime
from typing import Iterable, List

import arrow
import pandas as pd

from dexbot.models.market_data import Observation


def observations_to_dataframe(observations: List[Observation]) -> pd.DataFrame:
    """将 Observation 列表转换为 pandas DataFrame"""
    if not observations:
        return pd.DataFrame(columns=['price', 'volume'])

    df = pd.DataFrame([
        {
            'timestamp': obs.timestamp,
            'price': obs.price,
            'volume': obs.volume,
        }
        for obs in observations
    ])
    df.set_index('timestamp', inplace=True)
    return df


def trades_to_dataframe(trades: Iterable) -> pd.DataFrame:
    """将已完成交易转换为 DataFrame，便于按日聚合"""
    rows = [
        {
            'id': trade.id,
            'token': trade.token,
            'action': trade.action.value,
            'status': trade.status.value,
            'amount': trade.amount,
            'price': trade.price,
            'notional': trade.notional,
            'timestamp': trade.timestamp,
        }
        for trade in trades
    ]
    if not rows:
        return pd.DataFrame(columns=['id', 'token', 'action', 'status', 'amount',
                                     'price', 'notional', 'timestamp'])
    return pd.DataFrame(rows)


def daily_totals(values: pd.Series) -> pd.Series:
    """按自然日汇总带时间索引的序列"""
    if values.empty:
        return values
    index = pd.DatetimeIndex(values.index)
    return values.groupby(index.normalize()).sum()


def format_timestamp(timestamp: datetime, tz: str = 'local') -> str:
    """格式化时间戳用于日志和摘要（naive 时间按 tz 的本地时间解释）"""
    moment = arrow.get(timestamp)
    if timestamp.tzinfo is None:
        moment = moment.replace(tzinfo=tz)
    return moment.format('YYYY-MM-DD HH:mm:ss')
