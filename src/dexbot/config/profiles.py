"""
交易配置档案 (Trading Profile)
策略权重、启用开关、风控参数与交易参数的不可变组合，以及五个内置档案
"""

from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Mapping

from dexbot.models.strategy_data import StrategyName

WEIGHT_TOLERANCE = 0.001
DEFAULT_PROFILE_ID = 'balanced'


@dataclass(frozen=True)
class StrategyWeights:
    """各策略在合成信号中的权重，字段名与 StrategyName 的取值一致"""
    arbitrage: float = 0.0
    momentum: float = 0.0
    volume: float = 0.0
    trend: float = 0.0
    bollinger_bands: float = 0.0
    fibonacci: float = 0.0
    dca: float = 0.0

    def get(self, strategy: StrategyName) -> float:
        return getattr(self, strategy.value)

    def total(self) -> float:
        return sum(getattr(self, f.name) for f in fields(self))

    def as_dict(self) -> Dict[StrategyName, float]:
        return {name: self.get(name) for name in StrategyName}


@dataclass(frozen=True)
class EnabledStrategies:
    arbitrage: bool = True
    momentum: bool = True
    volume: bool = True
    trend: bool = True
    bollinger_bands: bool = True
    fibonacci: bool = True
    dca: bool = True

    def is_enabled(self, strategy: StrategyName) -> bool:
        return getattr(self, strategy.value)

    def enabled(self):
        return [name for name in StrategyName if self.is_enabled(name)]


@dataclass(frozen=True)
class RiskSettings:
    max_position_size: float
    min_confidence_threshold: float
    max_daily_loss: float
    max_drawdown: float
    trade_cooldown_minutes: float


@dataclass(frozen=True)
class TradingSettings:
    scan_interval_ms: int
    min_profit_threshold: float
    max_slippage: float
    enable_dry_run: bool


@dataclass(frozen=True)
class TradingProfile:
    """一份完整的交易档案"""
    id: str
    name: str
    description: str
    strategy_weights: StrategyWeights
    risk: RiskSettings
    trading: TradingSettings
    enabled_strategies: EnabledStrategies = EnabledStrategies()

    @property
    def scan_interval_seconds(self) -> float:
        return self.trading.scan_interval_ms / 1000.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'TradingProfile':
        """从YAML记录恢复档案，缺失的开关默认全部启用"""
        return cls(
            id=str(data['id']),
            name=str(data.get('name', data['id'])),
            description=str(data.get('description', '')),
            strategy_weights=StrategyWeights(**data['strategy_weights']),
            risk=RiskSettings(**data['risk']),
            trading=TradingSettings(**data['trading']),
            enabled_strategies=EnabledStrategies(**data.get('enabled_strategies', {})),
        )

    def with_changes(self, **changes) -> 'TradingProfile':
        return replace(self, **changes)


def validate_strategy_weights(weights: StrategyWeights) -> bool:
    """每个权重在 [0, 1] 之内，且权重之和在 1.0 ± 0.001 之内"""
    if any(not 0.0 <= getattr(weights, f.name) <= 1.0 for f in fields(weights)):
        return False
    return abs(weights.total() - 1.0) < WEIGHT_TOLERANCE


def normalize_strategy_weights(weights: StrategyWeights) -> StrategyWeights:
    total = weights.total()
    if total == 0:
        return weights
    return StrategyWeights(**{f.name: getattr(weights, f.name) / total for f in fields(weights)})


def create_custom_profile(profile_id: str, name: str, description: str,
                          strategy_weights: StrategyWeights, risk: RiskSettings,
                          trading: TradingSettings,
                          enabled_strategies: EnabledStrategies = EnabledStrategies()) -> TradingProfile:
    """创建自定义档案，权重自动归一化"""
    return TradingProfile(
        id=profile_id,
        name=name,
        description=description,
        strategy_weights=normalize_strategy_weights(strategy_weights),
        risk=risk,
        trading=trading,
        enabled_strategies=enabled_strategies,
    )


DEFAULT_PROFILES = (
    TradingProfile(
        id='conservative',
        name='Conservative',
        description='Low risk, steady gains with focus on arbitrage and trend following',
        strategy_weights=StrategyWeights(arbitrage=0.40, momentum=0.15, volume=0.10, trend=0.20,
                                         bollinger_bands=0.10, fibonacci=0.05, dca=0.0),
        risk=RiskSettings(max_position_size=500, min_confidence_threshold=0.6,
                          max_daily_loss=25, max_drawdown=50, trade_cooldown_minutes=10),
        trading=TradingSettings(scan_interval_ms=60000, min_profit_threshold=0.02,
                                max_slippage=0.03, enable_dry_run=True),
        enabled_strategies=EnabledStrategies(volume=False, fibonacci=False, dca=False),
    ),
    TradingProfile(
        id='balanced',
        name='Balanced',
        description='Moderate risk with diversified strategy approach',
        strategy_weights=StrategyWeights(arbitrage=0.25, momentum=0.15, volume=0.10, trend=0.10,
                                         bollinger_bands=0.15, fibonacci=0.15, dca=0.10),
        risk=RiskSettings(max_position_size=1000, min_confidence_threshold=0.5,
                          max_daily_loss=50, max_drawdown=100, trade_cooldown_minutes=5),
        trading=TradingSettings(scan_interval_ms=30000, min_profit_threshold=0.01,
                                max_slippage=0.05, enable_dry_run=True),
    ),
    TradingProfile(
        id='aggressive',
        name='Aggressive',
        description='High risk, high reward with all strategies enabled',
        strategy_weights=StrategyWeights(arbitrage=0.20, momentum=0.20, volume=0.15, trend=0.10,
                                         bollinger_bands=0.15, fibonacci=0.15, dca=0.05),
        risk=RiskSettings(max_position_size=2000, min_confidence_threshold=0.4,
                          max_daily_loss=100, max_drawdown=200, trade_cooldown_minutes=2),
        trading=TradingSettings(scan_interval_ms=15000, min_profit_threshold=0.005,
                                max_slippage=0.08, enable_dry_run=False),
    ),
    TradingProfile(
        id='arbitrage-focused',
        name='Arbitrage Focused',
        description='Specialized in arbitrage opportunities with minimal other strategies',
        strategy_weights=StrategyWeights(arbitrage=0.70, momentum=0.10, volume=0.10, trend=0.05,
                                         bollinger_bands=0.03, fibonacci=0.02, dca=0.0),
        risk=RiskSettings(max_position_size=1500, min_confidence_threshold=0.7,
                          max_daily_loss=75, max_drawdown=150, trade_cooldown_minutes=3),
        trading=TradingSettings(scan_interval_ms=10000, min_profit_threshold=0.005,
                                max_slippage=0.02, enable_dry_run=True),
        enabled_strategies=EnabledStrategies(trend=False, bollinger_bands=False,
                                             fibonacci=False, dca=False),
    ),
    TradingProfile(
        id='technical-analysis',
        name='Technical Analysis',
        description='Focus on technical indicators: Bollinger Bands, Fibonacci, and trend analysis',
        strategy_weights=StrategyWeights(arbitrage=0.10, momentum=0.15, volume=0.10, trend=0.25,
                                         bollinger_bands=0.25, fibonacci=0.15, dca=0.0),
        risk=RiskSettings(max_position_size=800, min_confidence_threshold=0.55,
                          max_daily_loss=40, max_drawdown=80, trade_cooldown_minutes=7),
        trading=TradingSettings(scan_interval_ms=45000, min_profit_threshold=0.015,
                                max_slippage=0.04, enable_dry_run=True),
        enabled_strategies=EnabledStrategies(dca=False),
    ),
)

BUILTIN_PROFILE_IDS = frozenset(profile.id for profile in DEFAULT_PROFILES)
