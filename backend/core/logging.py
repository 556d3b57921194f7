# backend/core/logging.py
import json
import logging
from typing import Any, Union

from core.request_id import RequestIDFilter

# attributes every LogRecord carries; anything else came in through `extra=`
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        # optional extra fields
        for key, val in record.__dict__.items():
            if key in _RESERVED or key.startswith("_"):
                continue
            payload[key] = val
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_json_logging(level: Union[int, str] = logging.INFO):
    root = logging.getLogger()
    root.handlers.clear()
    h = logging.StreamHandler()
    h.setFormatter(JsonFormatter())
    h.addFilter(RequestIDFilter())
    root.addHandler(h)
    root.setLevel(level.upper() if isinstance(level, str) else level)
