from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "booking.created",
    "booking.cancelled",
]

_audit_logger = logging.getLogger("audit")
_audit_logger.setLevel(logging.INFO)
if not _audit_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _audit_logger.addHandler(handler)
_audit_logger.propagate = False


def _enum_to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def emit_audit_log(
    *,
    action: AuditAction,
    booking_id: int,
    time_slot_id: Optional[int],
    service_id: Optional[int],
    guest_email: Optional[str],
    participant_count: Optional[int],
    status_from: Optional[str],
    status_to: Optional[str],
    total_price: Optional[Any] = None,
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Emit structured JSON audit log. Raises RuntimeError if logging fails."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "request_id": get_request_id(),
        "booking_id": booking_id,
        "time_slot_id": time_slot_id,
        "service_id": service_id,
        "guest_email": guest_email,
        "participant_count": participant_count,
        "status_from": _enum_to_str(status_from),
        "status_to": _enum_to_str(status_to),
        "total_price": None if total_price is None else str(total_price),
    }
    if message is not None:
        payload["message"] = message
    if extra:
        payload.update(extra)

    # Drop None values to keep the log compact.
    compact_payload = {k: v for k, v in payload.items() if v is not None}
    try:
        _audit_logger.info(json.dumps(compact_payload, ensure_ascii=True))
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc
