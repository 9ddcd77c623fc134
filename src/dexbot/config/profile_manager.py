"""
档案管理器 - 保存全部交易档案并持有当前档案的引用
内置档案不可修改或删除；自定义档案可选持久化到 YAML 文件
"""

import threading
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from dexbot.config.profiles import (
    BUILTIN_PROFILE_IDS,
    DEFAULT_PROFILE_ID,
    DEFAULT_PROFILES,
    StrategyWeights,
    TradingProfile,
    validate_strategy_weights,
)
from dexbot.utils.events import EventBus, EventTypes, event_bus
from dexbot.utils.log import setup_logging

log = setup_logging(module_prefix='PROFILE')


class ProfileManager:
    """交易档案的增删改查与切换"""

    def __init__(self, profiles_file: Optional[str] = None,
                 initial_profile: str = DEFAULT_PROFILE_ID,
                 bus: Optional[EventBus] = None):
        self.profiles_file = Path(profiles_file) if profiles_file else None
        self.bus = bus or event_bus
        self.lock = threading.Lock()
        self._profiles: Dict[str, TradingProfile] = {p.id: p for p in DEFAULT_PROFILES}
        self._current_id = DEFAULT_PROFILE_ID

        self._load_custom_profiles()

        if initial_profile != DEFAULT_PROFILE_ID and not self.switch(initial_profile):
            log.warning(f"[PROFILE] 初始档案 {initial_profile} 不存在，使用 {DEFAULT_PROFILE_ID}")

    def current(self) -> TradingProfile:
        """当前档案；若引用失效则回退到 balanced"""
        with self.lock:
            profile = self._profiles.get(self._current_id)
            if profile is None:
                log.warning(f"[PROFILE] 档案 {self._current_id} 不存在，回退到 {DEFAULT_PROFILE_ID}")
                profile = self._profiles[DEFAULT_PROFILE_ID]
            return profile

    @property
    def current_id(self) -> str:
        return self._current_id

    def get(self, profile_id: str) -> Optional[TradingProfile]:
        with self.lock:
            return self._profiles.get(profile_id)

    def list(self) -> List[TradingProfile]:
        with self.lock:
            return list(self._profiles.values())

    def switch(self, profile_id: str) -> bool:
        with self.lock:
            profile = self._profiles.get(profile_id)
            if profile is None:
                log.error(f"[PROFILE] 档案 {profile_id} 不存在")
                return False
            previous = self._current_id
            self._current_id = profile_id

        log.info(f"[PROFILE] 切换档案: {profile.name}")
        self.bus.publish(EventTypes.PROFILE_SWITCHED,
                         {'previous': previous, 'current': profile_id},
                         source='ProfileManager')
        return True

    def create(self, profile: TradingProfile) -> bool:
        with self.lock:
            if profile.id in self._profiles:
                log.error(f"[PROFILE] 档案 {profile.id} 已存在")
                return False
            if not validate_strategy_weights(profile.strategy_weights):
                log.error(f"[PROFILE] 策略权重之和必须为 1.0 (当前 {profile.strategy_weights.total():.4f})")
                return False
            self._profiles[profile.id] = profile
            self._save_custom_profiles()

        log.info(f"[PROFILE] 创建档案: {profile.name}")
        return True

    def update(self, profile_id: str, **changes) -> bool:
        """修改自定义档案的字段，如 strategy_weights=StrategyWeights(...)"""
        if profile_id in BUILTIN_PROFILE_IDS:
            log.error(f"[PROFILE] 内置档案 {profile_id} 不可修改")
            return False
        if 'id' in changes and changes['id'] != profile_id:
            log.error("[PROFILE] 不允许修改档案 id")
            return False

        with self.lock:
            profile = self._profiles.get(profile_id)
            if profile is None:
                log.error(f"[PROFILE] 档案 {profile_id} 不存在")
                return False

            try:
                updated = profile.with_changes(**changes)
            except TypeError as e:
                log.error(f"[PROFILE] 无效的档案字段: {e}")
                return False

            if not validate_strategy_weights(updated.strategy_weights):
                log.error(f"[PROFILE] 策略权重之和必须为 1.0 (当前 {updated.strategy_weights.total():.4f})")
                return False

            self._profiles[profile_id] = updated
            self._save_custom_profiles()

        log.info(f"[PROFILE] 更新档案: {updated.name}")
        return True

    def delete(self, profile_id: str) -> bool:
        if profile_id in BUILTIN_PROFILE_IDS:
            log.error(f"[PROFILE] 内置档案 {profile_id} 不可删除")
            return False

        with self.lock:
            if profile_id not in self._profiles:
                log.error(f"[PROFILE] 档案 {profile_id} 不存在")
                return False
            del self._profiles[profile_id]
            self._save_custom_profiles()
            fell_back = self._current_id == profile_id
            if fell_back:
                self._current_id = DEFAULT_PROFILE_ID

        log.info(f"[PROFILE] 删除档案: {profile_id}")
        if fell_back:
            log.info(f"[PROFILE] 当前档案已删除，切换到 {DEFAULT_PROFILE_ID}")
            self.bus.publish(EventTypes.PROFILE_SWITCHED,
                             {'previous': profile_id, 'current': DEFAULT_PROFILE_ID},
                             source='ProfileManager')
        return True

    def duplicate(self, profile_id: str, new_id: str, new_name: str) -> bool:
        with self.lock:
            original = self._profiles.get(profile_id)
            if original is None:
                log.error(f"[PROFILE] 档案 {profile_id} 不存在")
                return False
            if new_id in self._profiles:
                log.error(f"[PROFILE] 档案 {new_id} 已存在")
                return False

            copy = original.with_changes(id=new_id, name=new_name,
                                         description=f"{original.description} (Copy)")
            self._profiles[new_id] = copy
            self._save_custom_profiles()

        log.info(f"[PROFILE] 复制档案: {original.name} -> {new_name}")
        return True

    def summary(self) -> str:
        """当前档案的可读摘要"""
        profile = self.current()
        profiles = self.list()
        weights: StrategyWeights = profile.strategy_weights
        risk = profile.risk
        trading = profile.trading

        lines = [
            "=== TRADING PROFILES ===",
            f"Current Profile: {profile.name} ({profile.id})",
            f"Description: {profile.description}",
            "",
            "Strategy Weights:",
        ]
        for strategy, weight in weights.as_dict().items():
            flag = '' if profile.enabled_strategies.is_enabled(strategy) else ' (disabled)'
            lines.append(f"   {strategy.value}: {weight * 100:.1f}%{flag}")
        lines += [
            "",
            "Risk Settings:",
            f"   Max Position: {risk.max_position_size}",
            f"   Min Confidence: {risk.min_confidence_threshold * 100:.1f}%",
            f"   Max Daily Loss: {risk.max_daily_loss}",
            f"   Max Drawdown: {risk.max_drawdown}",
            f"   Cooldown: {risk.trade_cooldown_minutes}min",
            "",
            "Trading Settings:",
            f"   Scan Interval: {trading.scan_interval_ms / 1000:g}s",
            f"   Min Profit: {trading.min_profit_threshold * 100:.2f}%",
            f"   Max Slippage: {trading.max_slippage * 100:.1f}%",
            f"   Dry Run: {'Yes' if trading.enable_dry_run else 'No'}",
            "",
            f"Available Profiles ({len(profiles)}):",
        ]
        for p in profiles:
            marker = '*' if p.id == profile.id else ' '
            lines.append(f"   {marker} {p.name} ({p.id})")
        return "\n".join(lines)

    def custom_profiles(self) -> List[TradingProfile]:
        with self.lock:
            return [p for p in self._profiles.values() if p.id not in BUILTIN_PROFILE_IDS]

    def _load_custom_profiles(self):
        if self.profiles_file is None or not self.profiles_file.exists():
            return

        try:
            with open(self.profiles_file, 'r', encoding='utf-8') as f:
                records = yaml.safe_load(f) or []
            loaded = 0
            for record in records:
                profile = TradingProfile.from_dict(record)
                if profile.id in BUILTIN_PROFILE_IDS:
                    log.warning(f"[PROFILE] 忽略与内置档案同名的记录: {profile.id}")
                    continue
                if not validate_strategy_weights(profile.strategy_weights):
                    log.warning(f"[PROFILE] 忽略权重无效的档案: {profile.id}")
                    continue
                self._profiles[profile.id] = profile
                loaded += 1
            log.info(f"[PROFILE] 加载了 {loaded} 个自定义档案")
        except (OSError, yaml.YAMLError, KeyError, TypeError, ValueError) as e:
            log.warning(f"[PROFILE] 加载自定义档案失败: {e}")

    def _save_custom_profiles(self):
        """调用方需持有 self.lock"""
        if self.profiles_file is None:
            return

        records = [p.to_dict() for p in self._profiles.values() if p.id not in BUILTIN_PROFILE_IDS]
        try:
            with open(self.profiles_file, 'w', encoding='utf-8') as f:
                yaml.safe_dump(records, f, allow_unicode=True, sort_keys=False)
            log.debug(f"[PROFILE] 保存了 {len(records)} 个自定义档案")
        except OSError as e:
            log.error(f"[PROFILE] 保存自定义档案失败: {e}")
