"""
Logging utility functions and helpers.
"""

import logging
from typing import Any, Dict


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Usage:
        from utils.logger import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


SENSITIVE_FIELDS = {
    'token', 'secret', 'authorization', 'api_key', 'password',
    'cedula', 'national_id',
}

# Large payloads that are summarised instead of logged
PAYLOAD_FIELDS = {'file_data'}


def sanitize_log_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Remove sensitive information from log data.

    Tokens keep their first 8 characters for correlation, national ids and
    secrets are fully redacted, and base64 file payloads are replaced with
    their length. Nested dictionaries are sanitized recursively.
    """
    sanitized = data.copy()

    for key, value in sanitized.items():
        lowered = key.lower()

        if lowered in PAYLOAD_FIELDS:
            if isinstance(value, (str, bytes)):
                sanitized[key] = f"<{len(value)} bytes>"

        elif any(sensitive in lowered for sensitive in SENSITIVE_FIELDS):
            if isinstance(value, str):
                if 'token' in lowered and len(value) > 8:
                    sanitized[key] = f"{value[:8]}..."
                else:
                    sanitized[key] = "***REDACTED***"

        elif isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)

    return sanitized
