# common/logging_config.py
import json
import logging
from datetime import datetime, timezone

EXTRA_FIELDS = (
    "service",
    "path",
    "method",
    "status_code",
    "room_id",
    "review_id",
    "listing_id",
    "user_id",
    "dependency",
)

_configured = False


class JSONFormatter(logging.Formatter):
    """
    Render log records as single-line JSON documents.

    Extra attributes listed in EXTRA_FIELDS are copied into the payload
    when present on the record.
    """

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """
    Configure the root logger once per process.

    Every service module calls this at import time; only the first call
    installs a handler so importing several services in one process
    (e.g. under pytest) does not duplicate output.
    """
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")
        )
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
    _configured = True
