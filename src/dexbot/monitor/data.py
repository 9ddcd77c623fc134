"""
监控数据模型 - 对外只读访问器返回的数据结构
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


class SystemStatus(Enum):
    RUNNING = "运行中"
    STOPPED = "已停止"
    ERROR = "错误"
    STARTING = "启动中"


@dataclass
class TradingStats:
    """执行层统计"""
    total_trades: int
    filled_trades: int
    failed_trades: int
    active_trades: int
    success_rate: float
    total_volume: float
    buy_trades: int
    sell_trades: int


@dataclass
class PerformanceMetrics:
    """性能指标"""
    total_trades: int
    closed_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    avg_win: float
    avg_loss: float
    avg_win_return: float
    avg_loss_return: float
    total_volume: float
    total_profit: float
    max_drawdown: float
    sharpe_ratio: float
    daily_pnl: Dict[str, float] = field(default_factory=dict)


@dataclass
class VolumeMetrics:
    """成交量统计"""
    total_volume: float
    volume_24h: float
    volume_1h: float
    trade_count: int
    average_trade_size: float
    peak_trade_size: float
    trend: str  # increasing / decreasing / stable
    volume_by_token: Dict[str, float]
    top_tokens: List[str]


@dataclass
class EngineSnapshot:
    """引擎快照 - 系统当前状态的完整视图"""
    timestamp: datetime
    system_status: SystemStatus
    profile_id: str
    profile_name: str
    tokens: List[str]
    cycles_completed: int
    last_cycle_at: Optional[datetime]
    active_trades: int
    trading: TradingStats
    performance: PerformanceMetrics
    volume: VolumeMetrics
    dca_positions: int
    uptime_seconds: int
