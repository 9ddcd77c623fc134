import io
import unittest

from colorama import Fore
from logbook import INFO, LogRecord, TestHandler

from dexbot.utils.log import ColoredStreamHandler, channel_name, setup_logging


class TestColoredLogs(unittest.TestCase):
    def test_channel_names(self):
        self.assertEqual(channel_name(), 'DexBot')
        self.assertEqual(channel_name('RISK'), 'DexBot.RISK')

    def test_module_logger_channel(self):
        log = setup_logging(module_prefix='STRATEGY')
        self.assertEqual(log.name, 'DexBot.STRATEGY')

        with TestHandler() as handler:
            log.info("[SIGNAL] GALA: buy")
        self.assertTrue(handler.has_info("[SIGNAL] GALA: buy", channel='DexBot.STRATEGY'))

    def test_level_and_module_are_colored(self):
        handler = ColoredStreamHandler(io.StringIO())
        record = LogRecord('DexBot.STRATEGY', INFO, "测试信息")
        record.heavy_init()
        formatted = handler.format(record)

        self.assertIn(f"{Fore.GREEN}INFO", formatted)
        self.assertIn(f"{Fore.MAGENTA}DexBot.STRATEGY", formatted)
        self.assertIn("测试信息", formatted)

    def test_unknown_module_falls_back_to_white(self):
        handler = ColoredStreamHandler(io.StringIO())
        record = LogRecord('DexBot.OTHER', INFO, "plain")
        record.heavy_init()
        self.assertIn(f"{Fore.WHITE}DexBot.OTHER", handler.format(record))


if __name__ == '__main__':
    unittest.main()
