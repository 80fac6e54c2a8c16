import json
import logging
import os
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

AUDIT_LOGGER_PREFIX = "iyzico.audit"


def get_audit_logger(path: str) -> logging.Logger:
    """
    Logger that appends to ``path``. The file is opened on the first record,
    so a bad path only surfaces when something is written.
    """
    full_path = os.path.abspath(path)
    audit_logger = logging.getLogger(f"{AUDIT_LOGGER_PREFIX}.{full_path}")
    audit_logger.setLevel(logging.INFO)
    audit_logger.propagate = False

    if not any(
        isinstance(h, logging.FileHandler) and h.baseFilename == full_path
        for h in audit_logger.handlers
    ):
        handler = logging.FileHandler(full_path, mode="a", encoding="utf-8", delay=True)
        handler.setFormatter(logging.Formatter("%(message)s"))
        audit_logger.addHandler(handler)

    return audit_logger


class AuditLog:
    """Append-only text trail of gateway requests and responses."""

    def __init__(self, path: str):
        self.path = path
        self._logger = get_audit_logger(path)

    def write(self, title: str, data: Any) -> None:
        timestamp = datetime.now(timezone.utc).isoformat()
        if isinstance(data, str):
            body = data
        else:
            body = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        try:
            self._logger.info(f"\n--- {title} [{timestamp}] ---\n{body}")
        except OSError as e:
            # FileHandler opens the file on first emit, outside its own error handling
            logger.error(f"[iyzico] audit log {self.path} not writable: {e}")
