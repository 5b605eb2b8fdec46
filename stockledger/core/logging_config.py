import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

_STDLIB_KEYS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()) | {"message", "taskName"}

_configured = False


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    return repr(obj)


class JSONLineFormatter(logging.Formatter):
    """One JSON object per record; `extra=` fields are merged into the payload."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            payload["exc_type"] = type(record.exc_info[1]).__name__
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_json_default)


def configure_logging(level: str = "INFO", json_lines: bool = False) -> None:
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler()
    if json_lines:
        handler.setFormatter(JSONLineFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))

    root = logging.getLogger("stockledger")
    root.setLevel(level)
    root.addHandler(handler)
    root.propagate = False
    _configured = True
