import json
import logging
import sys
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base = {
            "ts": time.strftime('%Y-%m-%dT%H:%M:%S', time.gmtime(record.created)),
            "lvl": record.levelname.lower(),
            "msg": record.getMessage(),
            "logger": record.name,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            base.update(extra)
        if record.exc_info:
            base["exc"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False, default=str)


def parse_level(value: Union[str, int, None]) -> int:
    # Accept numeric levels as well as names; unknown names fall back to INFO
    if value is None:
        return logging.INFO
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    level = logging.getLevelName(text.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(level: Union[str, int, None] = "info", log_dir: Optional[str] = None) -> None:
    """Attach JSON handlers to the package loggers.

    Output goes to stderr only; stdout carries the JSON-RPC stream.
    """
    root = logging.getLogger("raworc_mcp")
    root.setLevel(parse_level(level))
    if root.handlers:
        return
    h = logging.StreamHandler(sys.stderr)
    h.setFormatter(JSONFormatter())
    root.addHandler(h)
    if log_dir:
        logs = Path(log_dir)
        logs.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(logs / "raworc-mcp.log", maxBytes=10_000_000, backupCount=5)
        fh.setFormatter(JSONFormatter())
        root.addHandler(fh)
