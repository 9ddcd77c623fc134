"""运行配置管理"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from dotenv import load_dotenv

from dexbot.models.market_data import TokenInfo
from dexbot.utils.log import setup_logging

log = setup_logging(module_prefix='ENGINE')


@dataclass
class ArbitrageConfig:
    """跨费率档位套利扫描配置"""
    threshold_pct: float = 0.5
    fee_tiers: List[int] = field(default_factory=lambda: [100, 500, 3000, 10000])
    quote_amount: float = 100.0


@dataclass
class RiskConfig:
    """与档案无关的全局风控参数"""
    min_balance: float = 100.0
    min_trade_size: float = 10.0
    max_position_fraction: float = 0.1
    # Kelly 默认输入，样本不足时使用
    win_rate: float = 0.6
    avg_win: float = 0.02
    avg_loss: float = 0.01
    min_samples: int = 10


@dataclass
class HistoryConfig:
    price_capacity: int = 100
    volume_capacity: int = 100


@dataclass
class PaperConfig:
    """模拟交易所的初始价格与余额（命令行入口使用）"""
    prices: Dict[str, float] = field(default_factory=dict)
    balances: Dict[str, float] = field(default_factory=dict)
    spreads: Dict[int, float] = field(default_factory=lambda: {500: 0.0})


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class TradingConfig:
    """交易机器人配置"""
    # 只交易这些代币，空列表表示交易所支持的全部代币
    tokens: List[str] = field(default_factory=list)

    quote_token: TokenInfo = field(
        default_factory=lambda: TokenInfo(symbol='GUSDC', identifier='GUSDC|Unit|none|none', decimals=6)
    )

    # 启动时使用的档案
    profile: str = 'balanced'
    profiles_file: Optional[str] = None

    wallet_address: str = ''
    dry_run: bool = True
    enable_trading: bool = False

    history: HistoryConfig = field(default_factory=HistoryConfig)
    arbitrage: ArbitrageConfig = field(default_factory=ArbitrageConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    paper: PaperConfig = field(default_factory=PaperConfig)

    log_level: str = 'INFO'

    @classmethod
    def create(cls, config_path: str = None) -> 'TradingConfig':
        """创建配置实例，自动加载 .env 与 config.yaml"""
        load_dotenv()

        if config_path is None:
            config_path = Path.cwd() / "config.yaml"

        config_data = {}
        if Path(config_path).exists():
            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}
        else:
            log.warning(f"[CONFIG] 配置文件不存在: {config_path}，使用默认配置")

        quote_data = config_data.get('quote_token', {})
        quote_token = TokenInfo(
            symbol=quote_data.get('symbol', 'GUSDC'),
            identifier=quote_data.get('identifier', 'GUSDC|Unit|none|none'),
            decimals=int(quote_data.get('decimals', 6)),
            name=quote_data.get('name'),
        )

        logging_data = config_data.get('logging', {})

        return cls(
            tokens=list(config_data.get('tokens', [])),
            quote_token=quote_token,
            profile=config_data.get('profile', 'balanced'),
            profiles_file=config_data.get('profiles_file'),
            wallet_address=os.getenv("WALLET_ADDRESS", ""),
            dry_run=_env_flag("DRY_RUN", True),
            enable_trading=_env_flag("ENABLE_TRADING", False),
            history=HistoryConfig(**config_data.get('history', {})),
            arbitrage=ArbitrageConfig(**config_data.get('arbitrage', {})),
            risk=RiskConfig(**config_data.get('risk', {})),
            paper=PaperConfig(**config_data.get('paper', {})),
            log_level=os.getenv("LOG_LEVEL", logging_data.get('level', 'INFO')),
        )
