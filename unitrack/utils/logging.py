import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from loguru import logger

from unitrack.utils.context import get_request_id

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[request_id]}</cyan> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[request_id]} | "
    "{name}:{function}:{line} - {message}"
)

logger.configure(extra={"request_id": "app"})


class InterceptHandler(logging.Handler):
    loglevel_mapping = {
        50: "CRITICAL",
        40: "ERROR",
        30: "WARNING",
        20: "INFO",
        10: "DEBUG",
        0: "NOTSET",
    }

    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = self.loglevel_mapping.get(record.levelno, "INFO")

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        request_id = get_request_id() or "app"
        log = logger.bind(request_id=request_id)
        log.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


class CustomizeLogger:
    @classmethod
    def make_logger(cls, settings):
        return cls.customize_logging(
            level=settings.LOG_LEVEL,
            log_dir=settings.LOG_DIR,
            filename=f"{date.today().strftime('%Y-%m-%d')}-unitrack.log",
            rotation=settings.LOG_ROTATION,
            retention=settings.LOG_RETENTION,
            use_json_logs=settings.LOG_JSON,
        )

    @classmethod
    def customize_logging(
        cls,
        level: str,
        log_dir: Optional[str] = None,
        filename: str = "unitrack.log",
        rotation: str = "10 MB",
        retention: str = "7 days",
        use_json_logs: bool = False,
    ):
        logger.remove()

        # Console logger with colors
        logger.add(
            sys.stderr,
            backtrace=True,
            level=level.upper(),
            format=CONSOLE_FORMAT,
            colorize=True,
        )

        # File logger without colors
        if log_dir:
            path = Path(log_dir) / filename
            if use_json_logs:
                logger.add(
                    str(path),
                    rotation=rotation,
                    retention=retention,
                    enqueue=True,
                    backtrace=True,
                    level=level.upper(),
                    serialize=True,
                    colorize=False,
                )
            else:
                logger.add(
                    str(path),
                    rotation=rotation,
                    retention=retention,
                    enqueue=True,
                    backtrace=True,
                    level=level.upper(),
                    format=FILE_FORMAT,
                    colorize=False,
                )

        # Redirect standard logging (httpx, httpcore) to loguru
        cls._setup_intercept_handlers()

        return logger

    @staticmethod
    def _setup_intercept_handlers():
        logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

        for log_name in ("httpx", "httpcore", "asyncio"):
            _logger = logging.getLogger(log_name)
            _logger.handlers = [InterceptHandler()]
            _logger.propagate = False


def configure_logging(settings):
    """Install the console/file sinks described by `settings`."""
    return CustomizeLogger.make_logger(settings)


def get_logger():
    """Get the logger bound to the current request ID."""
    request_id = get_request_id() or "app"
    return logger.bind(request_id=request_id)
