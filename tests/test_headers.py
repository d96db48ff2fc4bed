"""Tests for the Content-Security-Policy builder."""

from jobtrack_security.headers import CSP_DIRECTIVES, generate_csp, security_headers


class TestGenerateCsp:
    def test_default_policy(self):
        csp = generate_csp()

        assert csp.startswith("default-src 'self'; script-src 'self' 'unsafe-inline'")
        assert "object-src 'none'" in csp
        assert "frame-src 'self' https://accounts.google.com" in csp
        assert csp.endswith("form-action 'self'")
        assert csp.count("; ") == len(CSP_DIRECTIVES) - 1

    def test_override_replaces_sources(self):
        csp = generate_csp({"img-src": ["'self'"]})

        assert "img-src 'self';" in csp
        assert "blob:" not in csp

    def test_new_directive_appended(self):
        csp = generate_csp({"upgrade-insecure-requests": []})
        assert csp.endswith("; upgrade-insecure-requests")

    def test_defaults_not_mutated(self):
        generate_csp({"default-src": ["'none'"]})
        assert CSP_DIRECTIVES["default-src"] == ("'self'",)


class TestSecurityHeaders:
    def test_includes_policy_and_hardening(self):
        headers = security_headers()

        assert headers["Content-Security-Policy"] == generate_csp()
        assert headers["X-Content-Type-Options"] == "nosniff"
        assert headers["Referrer-Policy"] == "strict-origin-when-cross-origin"

    def test_custom_policy(self):
        assert security_headers("default-src 'none'")["Content-Security-Policy"] == (
            "default-src 'none'"
        )
