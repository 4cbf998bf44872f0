"""
utils/loggers.py

- get_logger():       console logger for the app (configured once)
- get_audit_logger(): JSON-lines log of submissions to logs/reconciliation.log
- log_event():        structured line for the audit logger
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from ..constants import AUDIT_LOG_FILE

__all__ = ["get_logger", "get_audit_logger", "log_event"]

_AUDIT_LOGGER_NAME = "shop_backoffice.audit"


def get_logger(name: str = "shop_backoffice", level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(level)
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        logger.addHandler(ch)
    return logger


def get_audit_logger(log_dir: Optional[Path] = None, level: int = logging.INFO) -> logging.Logger:
    """
    Logger that appends JSON lines for every exchange/installment submission.
    Reuses the same logger (no duplicate handlers) across calls.
    """
    logger = logging.getLogger(_AUDIT_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    if logger.handlers:
        return logger

    if log_dir is None:
        from ..config import get_settings
        log_dir = get_settings().log_dir

    try:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(Path(log_dir) / AUDIT_LOG_FILE), mode="a", encoding="utf-8", delay=True)
    except OSError:
        # Log directory not writable: keep the events on stderr
        sh = logging.StreamHandler()
        sh.setFormatter(_JsonLineFormatter())
        logger.addHandler(sh)
        return logger

    fh.setFormatter(_JsonLineFormatter())
    logger.addHandler(fh)

    sh = logging.StreamHandler()
    sh.setLevel(logging.WARNING)
    sh.setFormatter(_JsonLineFormatter())
    logger.addHandler(sh)
    return logger


class _JsonLineFormatter(logging.Formatter):
    """
    {"ts":"2026-01-16T12:00:01.123Z","level":"INFO","name":"...","msg":"...","extra":{...}}
    """
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if hasattr(record, "extra_payload") and isinstance(record.extra_payload, dict):
            payload["extra"] = record.extra_payload
        return json.dumps(payload, ensure_ascii=False, default=str)


def log_event(
    logger: logging.Logger,
    op: str,
    phase: str,
    message: str,
    extra: Dict[str, object] | None = None,
    level: int = logging.INFO,
) -> None:
    """
    Args:
        op: "exchange", "bulk_payment", "installment_payment", ...
        phase: "validated", "submitted", "accepted", "rejected", ...
        extra: additional key/values (ids, totals); never overrides op/phase.
    """
    extra_payload = {"op": op, "phase": phase}
    if extra:
        for k, v in extra.items():
            if k not in extra_payload:
                extra_payload[k] = v
    logger.log(level, message, extra={"extra_payload": extra_payload})
