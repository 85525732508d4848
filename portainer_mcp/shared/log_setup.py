"""
Logging setup with per-call correlation ids.

Every dispatch sets a short call id in a ContextVar; CallIDFilter copies it
onto each log record so concurrent calls can be told apart in the logs.
Logs go to stderr: with the stdio transport, stdout carries the protocol.
"""

import contextvars
import logging
import os
import sys
import uuid
from datetime import datetime

from .config import AppConfig

LOG_FORMAT = "%(asctime)s %(levelname)s [%(call_id)s] %(name)s:%(message)s"

_call_id_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("call_id", default="-")


def new_call_id() -> str:
    """Generate a call id and make it current for this task."""
    call_id = uuid.uuid4().hex[:12]
    _call_id_ctx.set(call_id)
    return call_id


def current_call_id() -> str:
    return _call_id_ctx.get("-")


class CallIDFilter(logging.Filter):
    """Injects the current call ID into every log record."""
    def filter(self, record):
        record.call_id = _call_id_ctx.get("-")
        return True


def configure_logging(config: AppConfig) -> None:
    """Install the call-id formatter on the root and uvicorn loggers."""
    log_level = getattr(logging, config.log_level, logging.INFO)
    cid_filter = CallIDFilter()
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addFilter(cid_filter)

    if not root_logger.handlers:
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(log_level)
        root_logger.addHandler(console)

    for handler in root_logger.handlers:
        handler.setFormatter(formatter)
        handler.addFilter(cid_filter)

    # uvicorn loggers don't propagate
    for uv_logger_name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        uv_log = logging.getLogger(uv_logger_name)
        uv_log.addFilter(cid_filter)
        for handler in uv_log.handlers:
            handler.setFormatter(formatter)
            handler.addFilter(cid_filter)

    if config.log_file_dir:
        os.makedirs(config.log_file_dir, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        log_file = os.path.join(config.log_file_dir, f"portainer_mcp_{timestamp}.log")
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(cid_filter)
        root_logger.addHandler(file_handler)
        for uv_logger_name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
            logging.getLogger(uv_logger_name).addHandler(file_handler)
        logging.getLogger(__name__).info(f"Logging to file: {log_file}")
