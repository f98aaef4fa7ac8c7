import logging
import sys

from pythonjsonlogger import jsonlogger

from edgescore.core.config import get_settings

# Transport loggers echo request URLs, and Telegram URLs carry the bot token.
QUIET_LOGGERS = ("httpx", "httpcore", "apscheduler", "asyncio")


class PipelineJsonFormatter(jsonlogger.JsonFormatter):
    """JSON lines stamped with the app name and environment."""

    def __init__(self, app_name: str, app_env: str) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s %(message)s")
        self.app_name = app_name
        self.app_env = app_env

    def add_fields(self, log_record, record, message_dict) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault("app", self.app_name)
        log_record.setdefault("env", self.app_env)


def setup_logging(level: str | None = None) -> None:
    settings = get_settings()
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(PipelineJsonFormatter(settings.app_name, settings.app_env))
    root_logger.setLevel((level or settings.log_level).upper())
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
