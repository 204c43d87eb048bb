"""
Log sanitization to prevent credential leakage.

Redacts bearer tokens, JWTs, passwords, secrets and database URLs
from log messages before they reach any handler.
"""
import re
import logging


class SanitizingFormatter(logging.Formatter):
    """
    Log formatter that redacts sensitive data from the rendered message.
    """

    PATTERNS = [
        # Bearer tokens
        (re.compile(r'Bearer\s+([a-zA-Z0-9_\-\.]{20,})', re.IGNORECASE), r'Bearer [REDACTED]'),

        # JWT tokens (header.payload.signature format)
        (re.compile(r'eyJ[a-zA-Z0-9_\-]+\.eyJ[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+'), r'[REDACTED_JWT]'),

        # Access / refresh tokens
        (re.compile(r'access[_-]?token["\s:=]+([a-zA-Z0-9_\-\.]{20,})', re.IGNORECASE), r'access_token=[REDACTED]'),
        (re.compile(r'refresh[_-]?token["\s:=]+([a-zA-Z0-9_\-\.]{20,})', re.IGNORECASE), r'refresh_token=[REDACTED]'),

        # Passwords
        (re.compile(r'password["\s:=]+([^\s,\]}"\']+)', re.IGNORECASE), r'password=[REDACTED]'),

        # Secrets
        (re.compile(r'secret["\s:=]+([a-zA-Z0-9_\-]{20,})', re.IGNORECASE), r'secret=[REDACTED]'),

        # Database URLs with passwords
        (re.compile(r'://([^:/]+):([^@]+)@'), r'://\1:[REDACTED]@'),

        # Authorization headers
        (re.compile(r'Authorization["\s:]+([^\s,\]}"\']+)', re.IGNORECASE), r'Authorization: [REDACTED]'),
    ]

    @classmethod
    def sanitize(cls, text):
        """Apply every redaction pattern to ``text``."""
        for pattern, replacement in cls.PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def format(self, record):
        return self.sanitize(super().format(record))


class SanitizingFilter(logging.Filter):
    """
    Logging filter that sanitizes the message and string args of a record.

    Runs before formatting, so JSON output is covered as well.
    """

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = SanitizingFormatter.sanitize(record.msg)

        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                SanitizingFormatter.sanitize(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )

        return True


def sanitize_dict_for_logging(data: dict) -> dict:
    """
    Sanitize dictionary for safe logging.

    Redacts credential-bearing keys and recurses into nested dicts and lists.
    """
    if not isinstance(data, dict):
        return data

    redact_fields = {
        'password', 'password_hash', 'secret', 'token',
        'credential', 'authorization', 'api_key',
    }

    sanitized = {}
    for key, value in data.items():
        key_lower = str(key).lower()
        if any(field in key_lower for field in redact_fields):
            sanitized[key] = '[REDACTED]'
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict_for_logging(value)
        elif isinstance(value, list):
            sanitized[key] = [
                sanitize_dict_for_logging(item) if isinstance(item, dict) else item
                for item in value
            ]
        elif isinstance(value, str):
            sanitized[key] = SanitizingFormatter.sanitize(value)
        else:
            sanitized[key] = value

    return sanitized
