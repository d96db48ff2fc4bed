"""Markup sanitization and HTML entity encoding.

Rich text is cleaned with a deny-list pass (dangerous tags, event handler
attributes, script-bearing URL protocols, CSS expressions) followed by a residual
encoding pass, so the output never contains a matchable ``<script``,
``javascript:`` or ``on<event>=`` sequence whatever the input casing or spacing.
"""

import re
from html import unescape

DANGEROUS_TAGS = (
    "script",
    "iframe",
    "object",
    "embed",
    "form",
    "input",
    "button",
    "link",
    "style",
    "meta",
    "base",
    "frameset",
    "frame",
    "applet",
)

DANGEROUS_PROTOCOLS = ("javascript", "vbscript", "data", "about", "mocha", "livescript")
SCRIPT_PROTOCOLS = ("javascript", "vbscript", "mocha", "livescript")

DISPLAY_ENTITIES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "/": "&#x2F;",
    "`": "&#x60;",
    "=": "&#x3D;",
}

STRICT_ENTITIES = {
    **DISPLAY_ENTITIES,
    "(": "&#x28;",
    ")": "&#x29;",
    "[": "&#x5B;",
    "]": "&#x5D;",
    "{": "&#x7B;",
    "}": "&#x7D;",
}

MAX_PASSES = 10


def _spaced(word: str) -> str:
    # Browsers ignore whitespace inside a URL scheme, so "java\tscript:" still runs.
    return r"\s*".join(re.escape(c) for c in word)


def _alternation(words: tuple[str, ...]) -> str:
    return "(?:" + "|".join(_spaced(w) for w in words) + ")"


_BLOCK_PATTERNS = [
    re.compile(rf"<\s*{tag}\b[^>]*>.*?<\s*/\s*{tag}\s*>", re.IGNORECASE | re.DOTALL)
    for tag in ("script", "style")
]
_TAG_PATTERN = re.compile(
    r"<\s*/?\s*(?:" + "|".join(DANGEROUS_TAGS) + r")\b[^>]*(?:>|$)", re.IGNORECASE
)
_EVENT_ATTR_PATTERN = re.compile(
    r"""[\s/]+on\w+\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]*)""", re.IGNORECASE
)
_PROTOCOL = _alternation(DANGEROUS_PROTOCOLS) + r"\s*:"
_URL_ATTR_PATTERN = re.compile(
    r"""\b(href|src)\s*=\s*("[^"]*"|'[^']*'|[^\s>]*)""", re.IGNORECASE
)
_DECODED_PROTOCOL = re.compile(r"(?:" + "|".join(DANGEROUS_PROTOCOLS) + r"):", re.IGNORECASE)
_URL_NOISE = re.compile(r"[\x00-\x20\x7f]+")
_PROTOCOL_ATTR_PATTERN = re.compile(
    r"""[\s/]+""" + _PROTOCOL + r"""\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]*)""", re.IGNORECASE
)
_STYLE_EXPRESSION_PATTERN = re.compile(
    r"""\bstyle\s*=\s*(?:"[^"]*expression[^"]*"|'[^']*expression[^']*'|[^\s>]*expression[^\s>]*)""",
    re.IGNORECASE,
)

_RESIDUAL_SCRIPT_TAG = re.compile(r"<(\s*/?\s*" + _spaced("script") + ")", re.IGNORECASE)
_RESIDUAL_SCRIPT_PROTOCOL = re.compile(
    "(" + _alternation(SCRIPT_PROTOCOLS) + r"\s*):", re.IGNORECASE
)
_RESIDUAL_EVENT = re.compile(r"\b(on\w+\s*)=", re.IGNORECASE)
_RESIDUAL_EXPRESSION = re.compile(r"(expression\s*)\(", re.IGNORECASE)


def encode_html(value: str | None) -> str:
    """Display-safe entity encoding."""
    if not value:
        return ""
    return "".join(DISPLAY_ENTITIES.get(c, c) for c in value)


def encode_strict(value: str | None) -> str:
    """Entity-encode every reserved character; for contexts where no markup may survive."""
    if not value:
        return ""
    return "".join(STRICT_ENTITIES.get(c, c) for c in value)


def _decode_attr_value(raw: str) -> str:
    # Browsers decode character references and drop whitespace and control
    # characters in a URL scheme before resolving it.
    if raw[:1] in ("'", '"'):
        raw = raw[1:-1]
    return _URL_NOISE.sub("", unescape(raw))


def _replace_url_attr(match: re.Match) -> str:
    if not _DECODED_PROTOCOL.match(_decode_attr_value(match.group(2))):
        return match.group(0)
    if match.group(1).lower() == "href":
        return 'href="#"'
    return 'src=""'


def _strip_once(html: str) -> str:
    for pattern in _BLOCK_PATTERNS:
        html = pattern.sub("", html)
    html = _TAG_PATTERN.sub("", html)
    html = _EVENT_ATTR_PATTERN.sub("", html)
    html = _PROTOCOL_ATTR_PATTERN.sub("", html)
    html = _URL_ATTR_PATTERN.sub(_replace_url_attr, html)
    html = _STYLE_EXPRESSION_PATTERN.sub("", html)
    return html


def encode_residual_vectors(html: str) -> str:
    html = _RESIDUAL_SCRIPT_TAG.sub(r"&lt;\1", html)
    html = _RESIDUAL_SCRIPT_PROTOCOL.sub(r"\1&#x3A;", html)
    html = _RESIDUAL_EVENT.sub(r"\1&#x3D;", html)
    html = _RESIDUAL_EXPRESSION.sub(r"\1&#x28;", html)
    return html


def sanitize_html(html: str | None) -> str:
    if not html:
        return ""

    sanitized = html
    for _ in range(MAX_PASSES):
        stripped = _strip_once(sanitized)
        if stripped == sanitized:
            break
        sanitized = stripped

    return encode_residual_vectors(sanitized)
