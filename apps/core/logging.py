"""
Structured JSON logging and security event logging.
"""
import json
import logging
import traceback
from datetime import datetime, timezone as dt_timezone

import sentry_sdk

from apps.core.log_sanitizer import SanitizingFormatter, sanitize_dict_for_logging


# LogRecord attributes that are never copied into the JSON payload as extras
_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs', 'message',
    'pathname', 'process', 'processName', 'relativeCreated',
    'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
    'taskName', 'request_id', 'company_id', 'principal_id',
}


class JSONFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.
    Includes request_id, company_id and principal_id when the
    RequestContextFilter (or an ``extra``) provided them.
    """

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(dt_timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': SanitizingFormatter.sanitize(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for attr in ('request_id', 'company_id', 'principal_id'):
            value = getattr(record, attr, None)
            if value is not None:
                log_data[attr] = str(value)

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': SanitizingFormatter.sanitize(str(record.exc_info[1])),
                'traceback': [
                    SanitizingFormatter.sanitize(line)
                    for line in traceback.format_exception(*record.exc_info)
                ],
            }

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith('_'):
                continue
            if isinstance(value, dict):
                value = sanitize_dict_for_logging(value)
            elif isinstance(value, str):
                value = SanitizingFormatter.sanitize(value)
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = SanitizingFormatter.sanitize(str(value))

        return json.dumps(log_data)


class SecurityLogger:
    """
    Centralized logging for authentication and authorization events.

    Events go to the ``security`` logger; critical ones are also
    reported to Sentry.
    """

    CRITICAL_EVENTS = {
        'permission_check_error',
        'cross_company_access',
    }

    @staticmethod
    def log_event(event_type: str, level: str = 'warning', **context):
        """
        Log a security event with structured data.

        Example:
            >>> SecurityLogger.log_event(
            ...     'permission_denied',
            ...     principal_id='42',
            ...     required=['orders.view_all_orders'],
            ... )
        """
        logger = logging.getLogger('security')

        log_data = {'event_type': event_type}
        log_data.update(context)
        log_data = sanitize_dict_for_logging(log_data)

        log_method = getattr(logger, level, logger.warning)
        log_method(f"Security event: {event_type}", extra=log_data)

        if event_type in SecurityLogger.CRITICAL_EVENTS:
            sentry_sdk.capture_message(
                f"Critical security event: {event_type}",
                level='error',
            )

    @staticmethod
    def log_invalid_credential(reason: str, ip_address: str = None):
        SecurityLogger.log_event(
            'invalid_credential',
            reason=reason,
            ip_address=ip_address,
        )

    @staticmethod
    def log_permission_denied(principal, code: str, required=None, path: str = None):
        """
        Log a denied authorization decision.

        Args:
            principal: Principal that was denied (may be None)
            code: Error code returned to the caller
            required: (module_key, permission_key) pairs that were required
            path: Request path
        """
        SecurityLogger.log_event(
            'permission_denied',
            principal_id=str(principal.id) if principal else None,
            principal_kind=principal.kind.value if principal else None,
            company_id=str(principal.company_id) if principal and principal.company_id else None,
            code=code,
            required=[f"{module}.{perm}" for module, perm in (required or [])],
            path=path,
        )
