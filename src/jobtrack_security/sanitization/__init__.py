"""Input sanitization, validation and XSS monitoring."""

from .html import encode_html, encode_strict, sanitize_html
from .inputs import (
    ContentClass,
    is_valid_email,
    is_valid_phone_number,
    is_valid_url,
    sanitize,
    sanitize_company_name,
    sanitize_email,
    sanitize_feedback,
    sanitize_filename,
    sanitize_job_title,
    sanitize_number,
    sanitize_phone_number,
    sanitize_text,
    sanitize_url,
)
from .monitor import ActivityType, SecurityMonitor, sanitize_link, validate_and_sanitize

__all__ = [
    "ActivityType",
    "ContentClass",
    "SecurityMonitor",
    "encode_html",
    "encode_strict",
    "is_valid_email",
    "is_valid_phone_number",
    "is_valid_url",
    "sanitize",
    "sanitize_company_name",
    "sanitize_email",
    "sanitize_feedback",
    "sanitize_filename",
    "sanitize_html",
    "sanitize_job_title",
    "sanitize_link",
    "sanitize_number",
    "sanitize_phone_number",
    "sanitize_text",
    "sanitize_url",
    "validate_and_sanitize",
]
