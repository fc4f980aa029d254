import json
import logging
from datetime import datetime, timezone
from typing import Any

from app.core.config import get_settings

_RESERVED = frozenset(
    (
        "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
        "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
        "created", "msecs", "relativeCreated", "thread", "threadName",
        "processName", "process", "message", "taskName",
    )
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        # structured fields passed with extra={...}
        for key, value in record.__dict__.items():
            if key not in _RESERVED:
                payload[key] = value

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: str | None = None) -> None:
    level = (level or get_settings().log_level).upper()

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()  # avoids duplicate handlers during reload

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(JsonFormatter())
    root.addHandler(console)

    # Access logs come from our middleware
    logging.getLogger("uvicorn.access").setLevel(logging.CRITICAL)
    logging.getLogger("uvicorn.error").setLevel(level)
