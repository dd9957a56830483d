"""Audit logging for control-plane messages.

Records every change to the gateway context (active app, intercepts, client
evictions) so a misbehaving embed can be traced back to the message that
configured it.
"""

import json
import logging
import os
from datetime import UTC, datetime
from typing import Any

from flask import current_app, has_request_context, request

AUDIT_LOGGER_NAME = "bloud.audit"


class AuditLogger:
    """Centralized audit logging for control messages."""

    def __init__(self, app=None):
        self.app = app
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        """Initialize the audit logger with Flask app."""
        audit_log_path = app.config.get("AUDIT_LOG") or os.path.join(
            app.instance_path, "audit.log"
        )
        os.makedirs(os.path.dirname(audit_log_path) or ".", exist_ok=True)

        audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
        audit_logger.setLevel(logging.INFO)
        audit_logger.propagate = False

        # One file handler per process, re-pointed when a new app uses another path
        for handler in list(audit_logger.handlers):
            if getattr(handler, "baseFilename", None) != os.path.abspath(audit_log_path):
                audit_logger.removeHandler(handler)
                handler.close()

        if not audit_logger.handlers:
            handler = logging.FileHandler(audit_log_path)
            handler.setLevel(logging.INFO)
            handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s - %(levelname)s - %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
            audit_logger.addHandler(handler)

        app.config["AUDIT_LOG"] = audit_log_path
        app.audit_logger = audit_logger

    def log_action(
        self,
        action: str,
        resource_type: str,
        resource_id: str | None = None,
        details: dict[str, Any] | None = None,
        success: bool = True,
        error_message: str | None = None,
    ):
        """Log a control action.

        Args:
            action: The action performed (e.g., 'SET_ACTIVE_APP')
            resource_type: Type of resource (e.g., 'gateway')
            resource_id: App name or client id the action applies to
            details: Additional details about the action
            success: Whether the action was applied
            error_message: Validation error if the action was rejected
        """
        try:
            ip_address = "unknown"
            user_agent = "unknown"
            if has_request_context():
                ip_address = request.remote_addr or "unknown"
                user_agent = request.headers.get("User-Agent", "unknown")

            audit_entry = {
                "timestamp": datetime.now(UTC).isoformat(),
                "ip_address": ip_address,
                "user_agent": user_agent,
                "action": action,
                "resource_type": resource_type,
                "resource_id": resource_id,
                "success": success,
                "details": details or {},
            }

            if error_message:
                audit_entry["error_message"] = error_message

            logger = getattr(current_app, "audit_logger", None) if current_app else None
            if isinstance(logger, logging.Logger):
                log_message = json.dumps(audit_entry, separators=(",", ":"))
                if success:
                    logger.info(log_message)
                else:
                    logger.error(log_message)

        except Exception as e:
            # Don't let audit logging break the control plane
            if current_app:
                current_app.logger.warning(f"Audit logging failed: {e}")


# Global audit logger instance
audit_logger = AuditLogger()


def log_control_message(
    message: Any, success: bool = True, error_message: str | None = None
):
    """Record a control message without copying intercept values into the log."""
    if not isinstance(message, dict):
        audit_logger.log_action(
            action="INVALID",
            resource_type="gateway",
            success=False,
            error_message=error_message,
        )
        return

    details: dict[str, Any] = {}
    if "needsRewrite" in message:
        details["needsRewrite"] = message["needsRewrite"]
    config = message.get("config")
    if isinstance(config, dict):
        details["sections"] = sorted(config)

    audit_logger.log_action(
        action=str(message.get("type") or "UNKNOWN"),
        resource_type="gateway",
        resource_id=message.get("appName") or message.get("clientId"),
        details=details,
        success=success,
        error_message=error_message,
    )


def get_audit_logs(limit: int = 100) -> list[dict]:
    """Retrieve recent audit entries.

    Args:
        limit: Maximum number of log entries to return

    Returns:
        List of audit log entries, newest first
    """
    try:
        if not current_app or not hasattr(current_app, "audit_logger"):
            return []

        audit_log_path = current_app.config.get("AUDIT_LOG")
        if not audit_log_path or not os.path.exists(audit_log_path):
            return []

        for handler in current_app.audit_logger.handlers:
            handler.flush()

        logs = []
        with open(audit_log_path) as f:
            lines = f.readlines()

        for line in lines[-limit:]:
            try:
                # Format: "timestamp - level - json_data"
                parts = line.strip().split(" - ", 2)
                if len(parts) >= 3:
                    logs.append(json.loads(parts[2]))
            except (json.JSONDecodeError, IndexError):
                continue

        return list(reversed(logs))

    except Exception as e:
        if current_app:
            current_app.logger.warning(f"Failed to retrieve audit logs: {e}")
        return []
