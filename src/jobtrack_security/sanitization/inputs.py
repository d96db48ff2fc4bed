"""Sanitizers and validators for untrusted form input.

Sanitizers are total: they never raise and return an empty string for empty
input. Validators are independent predicates; a sanitized value may still fail
validation (for example an email reduced to an empty string).
"""

import ipaddress
import logging
import math
import re
from enum import Enum
from urllib.parse import quote, urlsplit, urlunsplit

from .html import sanitize_html

logger = logging.getLogger(__name__)


class ContentClass(Enum):
    TEXT = "text"
    EMAIL = "email"
    URL = "url"
    HTML = "html"
    JOB_TITLE = "job-title"
    COMPANY = "company"
    FEEDBACK = "feedback"
    PHONE = "phone"
    FILENAME = "filename"


ALLOWED_URL_SCHEMES = ("http", "https")
DEFAULT_PORTS = {"http": 80, "https": 443}

MAX_TITLE_LENGTH = 100
MAX_FEEDBACK_LENGTH = 5000
MAX_PHONE_LENGTH = 20
MAX_FILENAME_LENGTH = 255
MAX_EMAIL_LENGTH = 254

CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
WHITESPACE_RUN = re.compile(r"\s+")
TITLE_UNSAFE_CHARS = re.compile(r"[<>{}\[\]\\]")
EMAIL_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9@._-]")
PHONE_UNSAFE_CHARS = re.compile(r"[^0-9+().\s-]")
FILENAME_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")
UNDERSCORE_RUN = re.compile(r"_{2,}")
NUMBER_UNSAFE_CHARS = re.compile(r"[^0-9.-]")
HOST_LABEL = re.compile(r"(?!-)[a-z0-9_-]{1,63}(?<!-)", re.ASCII)

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
PHONE_PATTERN = re.compile(r"[0-9+().\s-]{7,20}", re.ASCII)

URL_PATH_SAFE = "/%:@!$&'()*+,;=-._~"
URL_QUERY_SAFE = URL_PATH_SAFE + "?"


def sanitize_text(value: str | None) -> str:
    if not value:
        return ""
    value = CONTROL_CHARS.sub("", value)
    return WHITESPACE_RUN.sub(" ", value).strip()


def sanitize_email(value: str | None) -> str:
    if not value:
        return ""
    return EMAIL_UNSAFE_CHARS.sub("", value.lower().strip())


def is_valid_host(host: str) -> bool:
    """True for an IP literal or a dotted name of IDNA-encodable labels."""
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        pass
    try:
        ascii_host = host.encode("idna").decode("ascii")
    except UnicodeError:
        return False
    labels = ascii_host.removesuffix(".").split(".")
    return all(HOST_LABEL.fullmatch(label) for label in labels)


def canonicalize_url(value: str, schemes: tuple[str, ...] = ALLOWED_URL_SCHEMES) -> str | None:
    """Parse an absolute URL and return its canonical form, or None.

    Scheme and host are lowercased, default ports dropped, an empty path becomes
    "/", and unsafe userinfo/path/query characters are percent-encoded. Hosts
    that are neither IP literals nor valid domain names are rejected.
    """
    try:
        parts = urlsplit(value.strip())
        scheme = parts.scheme.lower()
        if scheme not in schemes:
            return None
        host = parts.hostname
        if not host or not is_valid_host(host):
            return None
        port = parts.port
    except ValueError:
        return None

    netloc = f"[{host}]" if ":" in host else host
    if port is not None and port != DEFAULT_PORTS.get(scheme):
        netloc = f"{netloc}:{port}"
    if parts.username:
        userinfo = quote(parts.username, safe="")
        if parts.password:
            userinfo = f"{userinfo}:{quote(parts.password, safe='')}"
        netloc = f"{userinfo}@{netloc}"

    path = quote(parts.path or "/", safe=URL_PATH_SAFE)
    query = quote(parts.query, safe=URL_QUERY_SAFE)
    fragment = quote(parts.fragment, safe=URL_QUERY_SAFE)
    return urlunsplit((scheme, netloc, path, query, fragment))


def sanitize_url(value: str | None) -> str:
    if not value:
        return ""
    return canonicalize_url(value) or ""


def sanitize_job_title(value: str | None) -> str:
    if not value:
        return ""
    return TITLE_UNSAFE_CHARS.sub("", sanitize_text(value))[:MAX_TITLE_LENGTH]


def sanitize_company_name(value: str | None) -> str:
    if not value:
        return ""
    return TITLE_UNSAFE_CHARS.sub("", sanitize_text(value))[:MAX_TITLE_LENGTH]


def sanitize_feedback(value: str | None) -> str:
    if not value:
        return ""
    return sanitize_html(value)[:MAX_FEEDBACK_LENGTH]


def sanitize_phone_number(value: str | None) -> str:
    if not value:
        return ""
    return PHONE_UNSAFE_CHARS.sub("", value).strip()[:MAX_PHONE_LENGTH]


def sanitize_filename(value: str | None) -> str:
    if not value:
        return ""
    value = FILENAME_UNSAFE_CHARS.sub("_", value)
    return UNDERSCORE_RUN.sub("_", value)[:MAX_FILENAME_LENGTH]


def sanitize_number(value: str | float | int | None) -> float | None:
    """Coerce numeric form input, returning None for anything non-finite."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value) if math.isfinite(value) else None

    match = re.match(r"-?\d*\.?\d+", NUMBER_UNSAFE_CHARS.sub("", str(value)))
    if not match:
        return None
    number = float(match.group(0))
    return number if math.isfinite(number) else None


_SANITIZERS = {
    ContentClass.TEXT: sanitize_text,
    ContentClass.EMAIL: sanitize_email,
    ContentClass.URL: sanitize_url,
    ContentClass.HTML: sanitize_html,
    ContentClass.JOB_TITLE: sanitize_job_title,
    ContentClass.COMPANY: sanitize_company_name,
    ContentClass.FEEDBACK: sanitize_feedback,
    ContentClass.PHONE: sanitize_phone_number,
    ContentClass.FILENAME: sanitize_filename,
}


def sanitize(value: str | None, content_class: ContentClass | str = ContentClass.TEXT) -> str:
    """Sanitize ``value`` for the given content class.

    Unknown class names fall back to plain-text sanitization.
    """
    if isinstance(content_class, str):
        try:
            content_class = ContentClass(content_class)
        except ValueError:
            logger.debug("Unknown content class %r, using text", content_class)
            content_class = ContentClass.TEXT
    if not isinstance(value, str):
        return ""
    return _SANITIZERS[content_class](value)


def is_valid_email(value: str | None) -> bool:
    if not value:
        return False
    return len(value) <= MAX_EMAIL_LENGTH and bool(EMAIL_PATTERN.fullmatch(value))


def is_valid_url(value: str | None) -> bool:
    if not value:
        return False
    return canonicalize_url(value) is not None


def is_valid_phone_number(value: str | None) -> bool:
    if not value:
        return False
    return bool(PHONE_PATTERN.fullmatch(value))
