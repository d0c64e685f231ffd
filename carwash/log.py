import inspect
import logging
import sys
import time

from fastapi import Request
from loguru import logger

from carwash import settings


class InterceptHandler(logging.Handler):
    """Forward stdlib logging records (uvicorn, tortoise) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(level: str | None = None) -> None:
    level = level or settings.LOG_LEVEL
    logger.remove()
    logger.add(sys.stderr, level=level)
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "tortoise"):
        std = logging.getLogger(name)
        std.handlers = [InterceptHandler()]
        std.propagate = False


async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.log(
        "WARNING" if response.status_code >= 400 else "DEBUG",
        "{} {} -> {} ({:.1f} ms)",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response
