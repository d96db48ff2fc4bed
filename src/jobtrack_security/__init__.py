"""jobtrack-security: security and access control engine for the job tracker."""

__version__ = "0.1.0"
