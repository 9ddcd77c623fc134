"""日志工具"""

import re
import sys

from logbook import Logger, StreamHandler
from colorama import init, Fore, Back, Style

# 初始化colorama以支持跨平台彩色输出
init()

ROOT_CHANNEL = 'DexBot'

_TIME_PATTERN = re.compile(r'(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}|\d{2}:\d{2}:\d{2})')

# 已推送到应用栈的处理器，避免每个模块重复输出
_active_handler = None


class ColoredStreamHandler(StreamHandler):
    """支持彩色输出的StreamHandler"""

    # 日志级别颜色映射
    LEVEL_COLORS = {
        'TRACE': Fore.CYAN,
        'DEBUG': Fore.BLUE,
        'INFO': Fore.GREEN,
        'NOTICE': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.RED + Back.WHITE + Style.BRIGHT,
    }

    # 模块前缀颜色映射
    MODULE_COLORS = {
        'STRATEGY': Fore.MAGENTA,
        'EXECUTION': Fore.CYAN,
        'RISK': Fore.RED,
        'PROFILE': Fore.BLUE,
        'MONITOR': Fore.BLUE,
        'DATA': Fore.YELLOW,
        'ENGINE': Fore.GREEN,
    }

    def format(self, record):
        """格式化日志记录，添加颜色"""
        formatted = super().format(record)

        level_color = self.LEVEL_COLORS.get(record.level_name, '')

        # 从channel中提取模块名 (如 DexBot.STRATEGY -> STRATEGY)
        module_color = ''
        channel = getattr(record, 'channel', None)
        if channel:
            parts = channel.split('.')
            if len(parts) > 1:
                module_color = self.MODULE_COLORS.get(parts[-1], Fore.WHITE)

        if level_color:
            colored_level = f"{level_color}{record.level_name}{Style.RESET_ALL}"
            formatted = formatted.replace(record.level_name, colored_level, 1)

        if module_color:
            colored_channel = f"{module_color}{channel}{Style.RESET_ALL}"
            formatted = formatted.replace(channel, colored_channel, 1)

        # 时间显示为灰色
        return _TIME_PATTERN.sub(f"{Style.DIM}\\1{Style.RESET_ALL}", formatted)


def channel_name(module_prefix: str = None) -> str:
    return f'{ROOT_CHANNEL}.{module_prefix}' if module_prefix else ROOT_CHANNEL


def setup_logging(level='INFO', module_prefix: str = None, use_colors: bool = True) -> Logger:
    """
    设置日志配置并返回logger实例

    首次调用时把处理器推送到应用栈，之后的调用只创建对应频道的Logger；
    需要调整级别时调用 configure_handler。

    Args:
        level: 日志级别
        module_prefix: 模块前缀 (STRATEGY / RISK / EXECUTION ...)
        use_colors: 是否使用彩色输出
    """
    if _active_handler is None:
        configure_handler(level=level, use_colors=use_colors)
    return Logger(channel_name(module_prefix))


def configure_handler(level='INFO', use_colors: bool = True) -> StreamHandler:
    """替换应用级处理器（例如从配置文件读取日志级别之后）"""
    global _active_handler

    if _active_handler is not None:
        _active_handler.pop_application()

    if use_colors:
        handler = ColoredStreamHandler(sys.stdout, level=level)
    else:
        handler = StreamHandler(sys.stdout, level=level)

    handler.push_application()
    _active_handler = handler
    return handler
