# --------------------------------------------------------------
# File: logging_config.py
# Description: Configuración de logging con redacción de identidades.
# --------------------------------------------------------------
"""Formatos de log humano y JSON con un filtro que oculta emails.

Uso::

    from wallet_core.logging_config import setup_logging
    setup_logging(level="DEBUG", fmt="json")
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import UTC, datetime

EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")


def redact(text: str) -> str:
    """Sustituye cualquier email por una versión enmascarada."""

    return EMAIL_RE.sub(lambda m: m.group(0)[:3] + "***", text)


class RedactingFilter(logging.Filter):
    """Enmascara emails en el mensaje ya formateado del registro."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = ()
        return True


class _JSONFormatter(logging.Formatter):
    """Emite cada registro como un objeto JSON en una línea."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            log_obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_obj, default=str)


class _HumanFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        return f"{ts} [{record.levelname:<7}] {record.name}: {record.getMessage()}"


def setup_logging(level: str = "INFO", fmt: str = "human") -> None:
    """Configura el logger del paquete `wallet_core`.

    Args:
        level (str): DEBUG, INFO, WARNING, ERROR o CRITICAL.
        fmt (str): ``"human"`` para una línea legible o ``"json"``.

    """

    logger = logging.getLogger("wallet_core")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JSONFormatter() if fmt == "json" else _HumanFormatter())
    handler.addFilter(RedactingFilter())
    logger.addHandler(handler)
