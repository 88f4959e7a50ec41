"""
External collaborators of the procurement flow.

The evidence store keeps goods receipt photos; the notification dispatcher
tells people that an order was created, received or cancelled.  Both are
called only after the state change has committed, and a dispatcher failure
never undoes that change.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from fleet_kernel.logging_config import get_logger

logger = get_logger("modules.procurement.ports")

PO_CREATED = "po.created"
PO_RECEIVED = "po.received"
PO_CANCELLED = "po.cancelled"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class EvidenceFile:
    """A file picked by the storekeeper as proof of delivery."""
    file_name: str
    content: bytes
    content_type: str | None = None


@runtime_checkable
class EvidenceStore(Protocol):
    """Uploads a file and returns a URL that can be shown on the order."""

    def upload(self, content: bytes, path: str, content_type: str | None = None) -> str: ...


@runtime_checkable
class NotificationDispatcher(Protocol):
    """Best-effort delivery of procurement events."""

    def notify(self, event: str, payload: dict[str, Any]) -> None: ...


class LoggingNotificationDispatcher:
    """Default dispatcher: writes each event to the structured log."""

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        logger.info("procurement_notification", extra={"event": event, "payload": payload})


def safe_file_name(file_name: str) -> str:
    """Collapse anything outside ``[A-Za-z0-9._-]`` into underscores."""
    cleaned = _UNSAFE_CHARS.sub("_", file_name.strip()).strip("_")
    return cleaned or "file"


def evidence_path(root: str, po_number: str, timestamp_ms: int, file_name: str) -> str:
    """``<root>/<po number>/<epoch ms>_<safe file name>``."""
    return f"{root.strip('/')}/{po_number}/{timestamp_ms}_{safe_file_name(file_name)}"
