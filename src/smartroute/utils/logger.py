import logging
import os
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s: %(message)s"


def setup_logger(name: str = "smartroute", level: str | None = None) -> logging.Logger:
    """Configure the package logger once; module loggers propagate into it.

    Under uvicorn the server's handlers are shared so router output lands in
    the same console stream. Standalone, a stdout handler is attached.
    """
    logger = logging.getLogger(name)
    logger.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())
    logger.propagate = False
    if logger.handlers:
        return logger

    server_handlers = logging.getLogger("uvicorn.error").handlers
    if server_handlers:
        for handler in server_handlers:
            logger.addHandler(handler)
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return logger
