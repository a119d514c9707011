"""
Structured Logger for the profile qualification worker

- JSON lines (production)
- Colored console (development)
- Per-run context (request id, username, depth, workflow, stage)

Modules keep using logging.getLogger(__name__); context rides along via
extra=log_context(...).
"""

import logging
import json
import sys
import traceback
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from dataclasses import dataclass, field, asdict


@dataclass
class LogContext:
    """Context attached to every log line of one analysis run"""
    request_id: Optional[str] = None
    username: Optional[str] = None
    depth: Optional[str] = None
    workflow: Optional[str] = None
    stage: Optional[str] = None
    duration_ms: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Drops None values and flattens extra"""
        result = {}
        for key, value in asdict(self).items():
            if value is not None and key != "extra":
                result[key] = value
        if self.extra:
            result.update(self.extra)
        return result

    def child(self, **overrides) -> "LogContext":
        extra = {**self.extra, **overrides.pop("extra", {})}
        values = {k: v for k, v in asdict(self).items() if k != "extra"}
        values.update(overrides)
        return LogContext(extra=extra, **values)


def log_context(ctx: Optional[LogContext] = None, **fields) -> Dict[str, Any]:
    """
    Build the extra= mapping for a logging call

        logger.info("[WorkflowEngine] stage done", extra=log_context(ctx, stage="triage"))
    """
    merged = {**(ctx.to_dict() if ctx else {}), **{k: v for k, v in fields.items() if v is not None}}
    return {"context": merged}


class StructuredFormatter(logging.Formatter):
    """JSON lines formatter"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "message": record.getMessage(),
            "logger": record.name,
        }

        context = getattr(record, "context", None)
        if context:
            log_entry["context"] = context

        if record.exc_info:
            log_entry["error"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
            }

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Colored console formatter (development)"""

    COLORS = {
        "DEBUG": "\033[36m",    # Cyan
        "INFO": "\033[32m",     # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",    # Red
        "CRITICAL": "\033[35m", # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.now().strftime("%H:%M:%S")

        message = f"{color}[{record.levelname}]{self.RESET} {timestamp} {record.getMessage()}"

        context = getattr(record, "context", None)
        if context:
            ctx_str = " ".join(f"{k}={v}" for k, v in context.items())
            message += f" {self.COLORS['DEBUG']}({ctx_str}){self.RESET}"

        if record.exc_info:
            message += f"\n{color}{traceback.format_exception(*record.exc_info)[-1].strip()}{self.RESET}"

        return message


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Install one stdout handler on the root logger (idempotent)"""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(root.handlers):
        if getattr(handler, "_worker_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter() if json_output else ColoredFormatter())
    handler._worker_handler = True
    root.addHandler(handler)

    # SDK request logs are noisy at INFO
    for noisy in ("httpx", "httpcore", "openai", "anthropic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
