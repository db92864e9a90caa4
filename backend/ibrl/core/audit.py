"""
Audit logging for proposal and automation lifecycle events.

Every state change an owner (or the engine on an owner's behalf) causes is
written as one JSON object to the "audit" logger, so it can be shipped to
centralized logging separately from application logs.

LOGGING SENSITIVE DATA: transaction payloads are never logged, only ids.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Separate logger for audit events (can be shipped to centralized logging)
audit_logger = logging.getLogger("audit")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditLog:
    """Central audit logging for engine and owner events."""

    @staticmethod
    def log_action(
        action: str,  # "create", "pause", "resume", "delete", "decide", "refresh"
        resource_type: str,  # "automation", "proposal"
        resource_id: str,
        owner: str,
        actor: str = "owner",  # "owner" | "agent"
        changes: Optional[Dict[str, Any]] = None,
    ):
        """
        Log lifecycle actions.

        Usage:
            AuditLog.log_action("create", "automation", automation.id, owner)
            AuditLog.log_action("create", "proposal", proposal.id, owner, actor="agent",
                                changes={"signal": "DRAWDOWN_HEDGE"})
        """
        log_entry = {
            "timestamp": _timestamp(),
            "event_type": f"{resource_type}.{action}",
            "owner": owner,
            "actor": actor,
            "resource_id": resource_id,
        }

        if changes:
            log_entry["changes"] = changes

        audit_logger.info(json.dumps(log_entry, default=str))

    @staticmethod
    def log_access_denied(
        action: str,  # "read", "decide", "refresh", "pause", "delete"
        resource_type: str,
        resource_id: str,
        owner: str,
        reason: str,
    ):
        """
        Log requests for ids the owner does not hold (unknown or foreign).

        The caller always gets a plain 404; the distinction lives only here.
        """
        log_entry = {
            "timestamp": _timestamp(),
            "event_severity": "WARNING",
            "event_type": "access_denied",
            "action": action,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "owner": owner,
            "reason": reason,
        }

        audit_logger.warning(json.dumps(log_entry))

    @staticmethod
    def log_tick(summary: Dict[str, Any]):
        """One line per evaluation pass."""
        log_entry = {
            "timestamp": _timestamp(),
            "event_type": "engine.tick",
            **summary,
        }
        audit_logger.info(json.dumps(log_entry, default=str))

    @staticmethod
    def log_api_call(
        endpoint: str,
        method: str,
        owner: Optional[str] = None,
        ip_address: str = "",
        status_code: int = 200,
        duration_ms: float = 0,
    ):
        """
        Log API calls for performance and security monitoring.

        Usage:
            AuditLog.log_api_call("/proposals", "GET", owner="7xKX...", ip_address="127.0.0.1", status_code=200, duration_ms=12.4)
        """
        log_entry = {
            "timestamp": _timestamp(),
            "event_type": "api.call",
            "endpoint": endpoint,
            "method": method,
            "owner": owner,
            "ip_address": ip_address,
            "status_code": status_code,
            "duration_ms": duration_ms,
        }

        audit_logger.info(json.dumps(log_entry))
