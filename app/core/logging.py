import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Optional

from app.core.context import get_actor_id, get_request_id
from app.core.settings import settings

# Optional structured fields a call site may pass through ``extra=``.
STRUCTURED_FIELDS = ("event", "transaction_id", "status", "reason")

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s actor=%(actor_id)s] %(name)s: %(message)s"


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.actor_id = get_actor_id()
        record.request_id = get_request_id()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line, tagged with the stream it was emitted on."""

    def __init__(self, stream_label: str = "app") -> None:
        super().__init__()
        self.stream_label = stream_label

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "stream": self.stream_label,
            "request_id": getattr(record, "request_id", "-"),
            "actor_id": getattr(record, "actor_id", "-"),
            "message": record.getMessage(),
        }
        for field in STRUCTURED_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _handler(formatter: str, level: str) -> dict:
    return {
        "class": "logging.StreamHandler",
        "level": level,
        "formatter": formatter,
        "filters": ["request_context"],
        "stream": "ext://sys.stdout",
    }


def build_logging_config(level: str, log_format: str) -> dict:
    if log_format == "text":
        formatters = {
            "app": {"format": TEXT_FORMAT},
            "audit": {"format": "AUDIT " + TEXT_FORMAT},
        }
    else:
        formatters = {
            "app": {"()": JsonFormatter, "stream_label": "app"},
            "audit": {"()": JsonFormatter, "stream_label": "audit"},
        }
    quiet = {"handlers": ["app"], "level": level, "propagate": False}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_context": {"()": RequestContextFilter}},
        "formatters": formatters,
        "handlers": {"app": _handler("app", level), "audit": _handler("audit", level)},
        "loggers": {
            "": {"handlers": ["app"], "level": level},
            "app.audit": {"handlers": ["audit"], "level": level, "propagate": False},
            "uvicorn": dict(quiet),
            "uvicorn.error": dict(quiet),
            "uvicorn.access": dict(quiet),
            # SQL echo stays off unless explicitly raised
            "sqlalchemy.engine": {"level": "WARNING"},
        },
    }


def configure_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    log_level = (level or settings.log_level).upper()
    logging.config.dictConfig(build_logging_config(log_level, log_format or settings.log_format))
    logging.getLogger(__name__).info(
        "Logging ready (env=%s, verification_gate=%s, marketing_sees_all=%s)",
        settings.environment,
        settings.require_verification_before_decision,
        settings.marketing_sees_all,
    )


def get_audit_logger() -> logging.Logger:
    return logging.getLogger("app.audit")
