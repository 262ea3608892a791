"""Output for the ``scribo`` logger tree: one line per record, tagged with the request id."""

from __future__ import annotations

import json
import logging
import sys
import time
from contextvars import ContextVar
from typing import Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("scribo_request_id", default=None)

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s"


def set_request_id(value: Optional[str]) -> None:
    request_id_var.set(value)


def tag_request_id(record: logging.LogRecord) -> bool:
    record.request_id = request_id_var.get() or "-"
    return True


class JsonLineFormatter(logging.Formatter):
    converter = time.gmtime

    def format(self, record: logging.LogRecord) -> str:
        line = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname,
            "logger": record.name,
            "requestId": getattr(record, "request_id", "-"),
            "message": record.getMessage(),
        }
        if record.exc_info:
            line["error"] = self.formatException(record.exc_info)
        return json.dumps(line, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_logs: bool = False) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(tag_request_id)
    handler.setFormatter(JsonLineFormatter() if json_logs else logging.Formatter(TEXT_FORMAT))

    # uvicorn and alembic keep their own handlers
    root = logging.getLogger("scribo")
    root.handlers[:] = [handler]
    root.setLevel(level.upper())
    root.propagate = False
