from dataclasses import dataclass
from typing import Optional

from dexbot.config.config import RiskConfig
from dexbot.config.profiles import TradingProfile
from dexbot.models.strategy_data import TradingSignal
from dexbot.utils.log import setup_logging

log = setup_logging(module_prefix='RISK')


@dataclass(frozen=True)
class KellyParameters:
    """Kelly 公式的输入: 胜率、平均盈利比例、平均亏损比例"""
    win_rate: float
    avg_win: float
    avg_loss: float


def kelly_fraction(params: KellyParameters) -> float:
    """
    f = (p * W - (1 - p) * L) / W

    平均盈利为 0 时没有可下注的边际，返回 0。
    """
    if params.avg_win <= 0:
        return 0.0
    return (params.win_rate * params.avg_win - (1 - params.win_rate) * params.avg_loss) / params.avg_win


class PositionSizer:
    """限额 Kelly 仓位计算"""

    def __init__(self, config: Optional[RiskConfig] = None):
        self.config = config or RiskConfig()

    @property
    def default_parameters(self) -> KellyParameters:
        return KellyParameters(win_rate=self.config.win_rate,
                               avg_win=self.config.avg_win,
                               avg_loss=self.config.avg_loss)

    def calculate(self, signal: TradingSignal, balance: float, profile: TradingProfile,
                  stats: Optional[KellyParameters] = None) -> float:
        """
        根据信号和余额计算交易金额（计价币）

        Args:
            signal: 合成后的交易信号
            balance: 可用余额
            profile: 当前档案，max_position_size 作为额外上限
            stats: 实际交易统计，None 时使用配置的默认值

        Returns:
            交易金额；低于最小交易额时返回 0.0，表示不交易
        """
        params = stats or self.default_parameters
        fraction = kelly_fraction(params)

        position = min(fraction * balance,
                       self.config.max_position_fraction * balance,
                       profile.risk.max_position_size)
        position = max(position, 0.0)
        size = position * signal.confidence

        if size < self.config.min_trade_size:
            log.debug(f"[SIZE] 仓位 {size:.2f} 低于最小交易额 {self.config.min_trade_size}，不交易")
            return 0.0

        log.debug(f"[SIZE] Kelly={fraction:.3f}, 上限={position:.2f}, 置信度={signal.confidence:.2f} -> {size:.2f}")
        return size
