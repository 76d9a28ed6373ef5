import sys
from loguru import logger


class LoggerManager:
    def __init__(self):
        self.console_sink_id = None
        self.level = "INFO"

        # Always remove the default handler
        logger.remove()

    def enable_console(self, level: str = None):
        if level is not None and level != self.level:
            self.level = level
            self.disable_console()
        if self.console_sink_id is None:
            self.console_sink_id = logger.add(sys.stdout, level=self.level, colorize=True)

    def disable_console(self):
        if self.console_sink_id is not None:
            logger.remove(self.console_sink_id)
            self.console_sink_id = None

    def get_logger(self):
        return logger


log_manager = LoggerManager()
