"""Logging middleware with sensitive data redaction."""

import re

# Sensitive parameters to redact from URLs and form bodies
SENSITIVE_PARAMS = [
    "api_key",
    "token",
    "secret",
    "refresh_token",
    "access_token",
    "client_secret",
    "code",
    "authorization",
    "bearer",
]


def redact_sensitive_data(url: str) -> str:
    """Redact sensitive query parameters from a URL or urlencoded body."""
    redacted = url
    for param in SENSITIVE_PARAMS:
        pattern = rf"(?<![A-Za-z_]){param}=([^&\s\"]+)"
        redacted = re.sub(pattern, f"{param}=***REDACTED***", redacted)
    return redacted
