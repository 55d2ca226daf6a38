import json
import logging
from typing import Optional, Dict, Any

from ...application.ports.audit_logger import AuditLogger
from ...utils import hash_phone_number, utcnow


class StdAuditLogger(AuditLogger):
    """One ``AUDIT: {json}`` line per auth event; phone numbers are hashed."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger(__name__)

    def log(self, action: str, phone: Optional[str] = None, user_id: Optional[str] = None, request_id: Optional[str] = None, ip_address: Optional[str] = None, success: bool = True, details: Optional[Dict[str, Any]] = None) -> None:
        entry = {
            "timestamp": utcnow().isoformat(),
            "action": action,
            "success": success,
        }
        optional = {
            "phone_hash": hash_phone_number(phone) if phone else None,
            "user_id": user_id,
            "request_id": request_id,
            "ip_address": ip_address,
        }
        entry.update({k: v for k, v in optional.items() if v is not None})
        if details:
            entry["details"] = details
        level = logging.INFO if success else logging.WARNING
        self._logger.log(level, f"AUDIT: {json.dumps(entry, sort_keys=True)}")
