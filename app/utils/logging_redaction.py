"""
Logging redaction helpers.
Masks quote API keys, session tokens and one-time codes in log messages.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable


_PATTERNS: Iterable[tuple[re.Pattern, str]] = (
    # Quote provider key travels as a query parameter: ?symbol=X&token=<key>
    (re.compile(r"([?&]token=)([^&\s\"']+)"), r"\1[REDACTED]"),
    # Authorization: Bearer <access token>
    (re.compile(r"(Bearer\s+)([A-Za-z0-9\-\._~+/]+=*)"), r"\1[REDACTED]"),
    # Identity provider project key header
    (re.compile(r"(?i)(apikey|api[_-]?key)(['\"]?\s*[:=]\s*['\"]?)([A-Za-z0-9\-\._]+)"), r"\1\2[REDACTED]"),
    # Tokens and one-time codes in key/value output
    (re.compile(r"(?i)\b(access_token|refresh_token|otp)(['\"]?\s*[:=]\s*['\"]?)([A-Za-z0-9\-\._]+)"), r"\1\2[REDACTED]"),
)


def redact_message(message: str) -> str:
    for pattern, replacement in _PATTERNS:
        message = pattern.sub(replacement, message)
    return message


class RedactingFilter(logging.Filter):
    """Filter that redacts credentials from log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            record.msg = redact_message(record.getMessage())
            record.args = ()
        except Exception:
            # Formatting errors are reported by the handler, not here
            pass
        return True


def install_redaction_filter() -> None:
    root = logging.getLogger()
    if any(isinstance(existing, RedactingFilter) for existing in root.filters):
        return
    redacting = RedactingFilter()
    root.addFilter(redacting)
    # Root filters do not see records propagated from child loggers
    for handler in root.handlers:
        if not any(isinstance(f, RedactingFilter) for f in handler.filters):
            handler.addFilter(redacting)
