"""
Risk gate applied to every combined signal before it reaches execution.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, Optional

from dexbot.config.config import RiskConfig
from dexbot.config.profiles import TradingProfile
from dexbot.models.strategy_data import TradingSignal
from dexbot.utils.log import setup_logging

log = setup_logging(module_prefix='RISK')


@dataclass(frozen=True)
class RiskDecision:
    """Result of risk filtering."""

    approved: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.approved


@dataclass(frozen=True)
class RiskMetrics:
    daily_pnl: float
    total_pnl: float
    peak_pnl: float
    current_drawdown: float
    max_drawdown: float
    trading_day: date
    traded_tokens: int


class RiskManager:
    """Confidence, balance, cooldown, daily loss and drawdown checks."""

    def __init__(self, config: Optional[RiskConfig] = None):
        self.config = config or RiskConfig()
        self.last_trade_times: Dict[str, datetime] = {}
        self.daily_pnl = 0.0
        self.total_pnl = 0.0
        self.peak_pnl = 0.0
        self.max_drawdown = 0.0
        self.trading_day = datetime.now().date()

    @property
    def current_drawdown(self) -> float:
        return self.peak_pnl - self.total_pnl

    def reset_if_new_day(self, now: Optional[datetime] = None):
        today = (now or datetime.now()).date()
        if today != self.trading_day:
            log.info("[RISK] New trading day, resetting daily P&L")
            self.daily_pnl = 0.0
            self.trading_day = today

    def should_execute(self, signal: TradingSignal, token: str, balance: float,
                       profile: TradingProfile, now: Optional[datetime] = None) -> RiskDecision:
        now = now or datetime.now()
        self.reset_if_new_day(now)
        risk = profile.risk

        if not signal.is_actionable:
            return RiskDecision(False, "hold_signal")

        if signal.confidence < risk.min_confidence_threshold:
            log.debug(f"[RISK] {token}: confidence {signal.confidence:.2f} below "
                      f"{risk.min_confidence_threshold:.2f}")
            return RiskDecision(False, "low_confidence")

        if balance < self.config.min_balance:
            log.warning(f"[RISK] {token}: balance {balance:.2f} below minimum {self.config.min_balance:.2f}")
            return RiskDecision(False, "insufficient_balance")

        last_trade = self.last_trade_times.get(token)
        if last_trade is not None and now - last_trade < timedelta(minutes=risk.trade_cooldown_minutes):
            remaining = timedelta(minutes=risk.trade_cooldown_minutes) - (now - last_trade)
            log.info(f"[RISK] {token}: cooldown active, {remaining.total_seconds():.0f}s remaining")
            return RiskDecision(False, "cooldown")

        if -self.daily_pnl >= risk.max_daily_loss:
            log.warning(f"[RISK] Daily loss {-self.daily_pnl:.2f} reached limit {risk.max_daily_loss:.2f}")
            return RiskDecision(False, "daily_loss_limit")

        if self.current_drawdown >= risk.max_drawdown:
            log.warning(f"[RISK] Drawdown {self.current_drawdown:.2f} reached limit {risk.max_drawdown:.2f}")
            return RiskDecision(False, "max_drawdown")

        return RiskDecision(True)

    def record_trade(self, token: str, at: Optional[datetime] = None):
        """Start the cooldown window for a token."""
        self.last_trade_times[token] = at or datetime.now()

    def update_metrics(self, pnl: float, at: Optional[datetime] = None):
        """Fold realized P&L of a closed trade into daily and drawdown tracking."""
        self.reset_if_new_day(at)
        self.daily_pnl += pnl
        self.total_pnl += pnl
        self.peak_pnl = max(self.peak_pnl, self.total_pnl)
        self.max_drawdown = max(self.max_drawdown, self.current_drawdown)

    def get_risk_metrics(self, now: Optional[datetime] = None) -> RiskMetrics:
        now = now or datetime.now()
        self.reset_if_new_day(now)
        return RiskMetrics(
            daily_pnl=self.daily_pnl,
            total_pnl=self.total_pnl,
            peak_pnl=self.peak_pnl,
            current_drawdown=self.current_drawdown,
            max_drawdown=self.max_drawdown,
            trading_day=self.trading_day,
            traded_tokens=len(self.last_trade_times),
        )
