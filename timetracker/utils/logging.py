"""
Logging configuration with optional JSON output.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class JSONFormatter(logging.Formatter):
    """JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
            "service": "timetracker",
        }

        # Timer context attached through ``extra=``
        for key in ("user_id", "timer_id", "task_id", "state"):
            if hasattr(record, key):
                log_obj[key] = getattr(record, key)

        if record.exc_info:
            log_obj["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_obj)


def configure_logging(level: str = "INFO", use_json: Optional[bool] = None) -> None:
    """
    Configure root logging once for the process.

    Args:
        level: Log level name (e.g. "INFO", "DEBUG")
        use_json: Emit one JSON object per line. Defaults to the
            ``log_json`` setting.
    """
    if use_json is None:
        from timetracker.config import settings

        use_json = settings.log_json

    handler = logging.StreamHandler(sys.stdout)

    if use_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[handler],
        force=True,
    )
