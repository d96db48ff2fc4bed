"""Content Security Policy and hardening headers for the tracker's pages."""

from collections.abc import Iterable, Mapping

CSP_DIRECTIVES: dict[str, tuple[str, ...]] = {
    "default-src": ("'self'",),
    "script-src": (
        "'self'",
        "'unsafe-inline'",
        "'unsafe-eval'",
        "https://vercel.live",
        "https://vitals.vercel-insights.com",
    ),
    "style-src": ("'self'", "'unsafe-inline'", "https://fonts.googleapis.com"),
    "font-src": ("'self'", "https://fonts.gstatic.com"),
    "img-src": ("'self'", "data:", "https:", "blob:"),
    "connect-src": (
        "'self'",
        "https://*.googleapis.com",
        "https://*.firebaseio.com",
        "https://*.cloudfunctions.net",
        "wss://*.firebaseio.com",
    ),
    "frame-src": ("'self'", "https://accounts.google.com"),
    "object-src": ("'none'",),
    "base-uri": ("'self'",),
    "form-action": ("'self'",),
}

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def generate_csp(overrides: Mapping[str, Iterable[str]] | None = None) -> str:
    """Render the policy as ``directive sources; ...``.

    An override replaces a directive's sources; directives not already in the
    default policy are appended in the order given.
    """
    directives = dict(CSP_DIRECTIVES)
    for name, sources in (overrides or {}).items():
        directives[name] = tuple(sources)
    return "; ".join(" ".join((name, *sources)) for name, sources in directives.items())


def security_headers(csp: str | None = None) -> dict[str, str]:
    headers = {"Content-Security-Policy": csp or generate_csp()}
    headers.update(SECURITY_HEADERS)
    return headers
