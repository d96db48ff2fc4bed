"""Security event logging."""

from .logger import SecurityEventLogger
from .models import SecurityEvent, SecurityEventType, Severity

__all__ = [
    "SecurityEvent",
    "SecurityEventLogger",
    "SecurityEventType",
    "Severity",
]
