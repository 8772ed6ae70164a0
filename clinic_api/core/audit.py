"""
Security event logging.

Security-relevant actions go to their own logger so they can be routed and
retained separately from request logs.
"""
import logging
from typing import Any

security_logger = logging.getLogger("clinic_api.security")


def log_security_event(action: str, level: int = logging.INFO, **details: Any) -> None:
    """
    Write one security event.

    Args:
        action: Upper-case event name (e.g. 'LOGIN_FAILED', 'TENANT_CREATED')
        level: Logging level for the record
        details: Context; never pass passwords, tokens or hashes
    """
    rendered = " ".join(f"{key}={value}" for key, value in sorted(details.items()))
    security_logger.log(level, f"{action} {rendered}".rstrip(), extra={"security_action": action})
