"""
Logging setup.

One JSON object per line; anything passed through ``extra=`` ends up as a
top-level key so correlation ids and ledger fields stay queryable.
"""
import json
import logging
from datetime import datetime, timezone

from causas_ledger.core.config import settings

# Attributes every LogRecord carries; everything else came from ``extra=``.
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED and not key.startswith("_"):
                log_data[key] = value

        if record.exc_info:
            log_data["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(level: str = settings.LOG_LEVEL, fmt: str = settings.LOG_FORMAT) -> logging.Logger:
    root = logging.getLogger("causas_ledger")
    root.setLevel(getattr(logging, level, logging.INFO))

    if not root.handlers:
        handler = logging.StreamHandler()
        if fmt == "json":
            handler.setFormatter(JSONFormatter())
        else:
            handler.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
            )
        root.addHandler(handler)

    return root


logger = setup_logging()
