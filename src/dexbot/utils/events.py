"""
轻量级事件系统 - 用于解耦组件间的通信
交易完成、配置切换等事件通过总线分发给统计与风控组件，线程安全
"""

import threading
from typing import Dict, List, Callable, Any, Optional
from dataclasses import dataclass
from datetime import datetime

from dexbot.utils.log import setup_logging

log = setup_logging(module_prefix='ENGINE')


@dataclass
class Event:
    """事件数据结构"""
    type: str
    data: Dict[str, Any]
    timestamp: datetime
    source: Optional[str] = None


class EventBus:
    """线程安全的事件总线"""

    def __init__(self):
        self._subscribers: Dict[str, List[Callable]] = {}
        self._lock = threading.RLock()

    def subscribe(self, event_type: str, callback: Callable[[Event], None]):
        """订阅事件类型

        Args:
            event_type: 事件类型名称
            callback: 回调函数，接收 Event 对象
        """
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(callback)
            log.debug(f"[EVENT] 订阅事件: {event_type}")

    def unsubscribe(self, event_type: str, callback: Callable[[Event], None]):
        """取消订阅"""
        with self._lock:
            callbacks = self._subscribers.get(event_type)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)
                log.debug(f"[EVENT] 取消订阅: {event_type}")

    def publish(self, event_type: str, data: Dict[str, Any], source: str = None) -> Event:
        """发布事件（同步）

        订阅者抛出的异常只记录日志，不会影响发布方。

        Args:
            event_type: 事件类型
            data: 事件数据
            source: 事件来源标识
        """
        event = Event(
            type=event_type,
            data=data,
            timestamp=datetime.now(),
            source=source
        )

        with self._lock:
            subscribers = list(self._subscribers.get(event_type, []))

        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                log.error(f"[EVENT] 事件处理异常 {event_type}: {e}")

        return event

    def get_subscriber_count(self, event_type: str = None) -> int:
        """获取订阅者数量"""
        with self._lock:
            if event_type:
                return len(self._subscribers.get(event_type, []))
            return sum(len(subs) for subs in self._subscribers.values())

    def clear_subscribers(self, event_type: str = None):
        """清除订阅者"""
        with self._lock:
            if event_type:
                self._subscribers.pop(event_type, None)
            else:
                self._subscribers.clear()


# 全局事件总线实例
event_bus = EventBus()


class EventTypes:
    """标准事件类型定义"""

    # 策略事件
    SIGNAL_GENERATED = "signal_generated"

    # 交易事件
    TRADE_COMPLETED = "trade_completed"

    # 配置事件
    PROFILE_SWITCHED = "profile_switched"

    # 系统事件
    CYCLE_COMPLETED = "cycle_completed"
    SYSTEM_STARTED = "system_started"
    SYSTEM_STOPPED = "system_stopped"
    ERROR_OCCURRED = "error_occurred"
