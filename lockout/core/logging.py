"""
Logging configuration.

Readable text in development. In production every record, whether it comes
from a stdlib logger or a structlog one, is rendered as one JSON object per
line with secrets removed and login identifiers masked.
"""
import logging
import re
import sys
from typing import Any

from lockout.core.config import Settings, settings as default_settings

# Keys whose values are dropped entirely
SENSITIVE_FIELDS = (
    "password",
    "token",
    "api_key",
    "secret",
    "session_id",
    "csrf_token",
    "authorization",
    "cookie",
)
REDACTED = "***REDACTED***"

_EMAIL_RE = re.compile(r"([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+\.[A-Za-z]{2,})")
_USERNAME_PREFIX = "username|"

NOISY_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "sqlalchemy.dialects", "sqlalchemy.orm", "httpx")


def setup_logging(settings: Settings | None = None) -> None:
    """Configure the root logger from LOG_LEVEL and DEBUG."""
    settings = settings or default_settings
    level = logging.getLevelName(settings.LOG_LEVEL)

    if settings.DEBUG:
        configure_development_logging(level)
    else:
        configure_production_logging(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def configure_development_logging(level: int) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )


def configure_production_logging(level: int) -> None:
    """JSON to stdout via structlog, or python-json-logger when structlog is missing."""
    handler = logging.StreamHandler(sys.stdout)

    try:
        import structlog
    except ImportError:
        from pythonjsonlogger import jsonlogger

        handler.setFormatter(
            jsonlogger.JsonFormatter("%(asctime)s %(name)s %(levelname)s %(message)s", timestamp=True)
        )
    else:
        shared = [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ExtraAdder(),
            structlog.processors.TimeStamper(fmt="iso"),
            redact_sensitive_data,
        ]
        handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                foreign_pre_chain=shared,
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.processors.format_exc_info,
                    structlog.processors.JSONRenderer(),
                ],
            )
        )
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                *shared,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)


def redact_sensitive_data(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """structlog processor: drop secret values, mask identifiers in the rest."""
    redacted = {}
    for key, value in event_dict.items():
        if isinstance(key, str) and any(s in key.lower() for s in SENSITIVE_FIELDS):
            redacted[key] = REDACTED
        elif isinstance(value, str):
            redacted[key] = redact_string(value)
        else:
            redacted[key] = value
    return redacted


def redact_string(value: str) -> str:
    """
    Mask personal data in a log value.

    - ``email|alice@x.io`` -> ``email|a***@x.io`` (any email, anywhere)
    - ``username|alice`` -> ``username|a***``
    - long opaque tokens keep only their ends
    """
    if "@" in value:
        return _EMAIL_RE.sub(r"\1***@\2", value)

    if value.startswith(_USERNAME_PREFIX) and len(value) > len(_USERNAME_PREFIX):
        return f"{_USERNAME_PREFIX}{value[len(_USERNAME_PREFIX)]}***"

    if len(value) > 20 and value.replace("_", "").replace("-", "").isalnum():
        return f"{value[:8]}...{value[-4:]}"

    return value


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogHelper:
    """
    Stdlib logger that attaches keyword context as record attributes.

    Usage:
        logger = LogHelper(__name__)
        logger.warning("Identifier locked", identifier="email|a@b.c", max_attempts=5)
    """

    def __init__(self, name: str):
        self.logger = get_logger(name)
        self.name = name

    def _log(self, level: int, message: str, context: dict[str, Any]) -> None:
        if not self.logger.isEnabledFor(level):
            return
        extra = {"service": "lockout", "component": self.name, **context}
        self.logger.log(level, message, extra=extra)

    def debug(self, message: str, **context: Any) -> None:
        self._log(logging.DEBUG, message, context)

    def info(self, message: str, **context: Any) -> None:
        self._log(logging.INFO, message, context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(logging.WARNING, message, context)
