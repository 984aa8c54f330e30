"""
Custom logging formatters and filters for structured, sanitized logging.
"""
import json
import logging
import re
import traceback
from datetime import datetime, timezone as dt_timezone
from django.utils import timezone
import sentry_sdk


class PIIMasker:
    """
    Utility class to mask sensitive PII data in logs.
    """

    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b')
    API_KEY_PATTERN = re.compile(r'(api[_-]?key|token|secret|password|auth)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)', re.IGNORECASE)

    # Sensitive field names that should be masked
    SENSITIVE_FIELDS = {
        'password', 'password_hash', 'password_confirmation', 'passwd',
        'token', 'access_token', 'refresh_token', 'bearer_token',
        'secret', 'secret_key', 'jwt_secret_key',
    }

    @classmethod
    def mask_email(cls, text):
        """Mask email addresses in text."""
        if not isinstance(text, str):
            return text

        def mask_email_match(match):
            local, _, domain = match.group(0).partition('@')
            masked_local = local[0] + '*' * (len(local) - 1) if len(local) > 1 else local
            return f"{masked_local}@{domain}"

        return cls.EMAIL_PATTERN.sub(mask_email_match, text)

    @classmethod
    def mask_api_keys(cls, text):
        """Mask tokens, secrets and passwords in text."""
        if not isinstance(text, str):
            return text
        return cls.API_KEY_PATTERN.sub(r'\1: ********', text)

    @classmethod
    def mask_text(cls, text):
        """Apply all masking patterns to text."""
        if not isinstance(text, str):
            return text
        text = cls.mask_email(text)
        text = cls.mask_api_keys(text)
        return text

    @classmethod
    def mask_dict(cls, data):
        """Recursively mask sensitive data in dictionaries."""
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            if key.lower() in cls.SENSITIVE_FIELDS:
                masked[key] = '********' if value else value
            elif isinstance(value, dict):
                masked[key] = cls.mask_dict(value)
            elif isinstance(value, str):
                masked[key] = cls.mask_text(value)
            else:
                masked[key] = value

        return masked


class JSONFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.
    Includes request_id and user_id from extra fields if available.
    Automatically masks sensitive PII data.
    """

    RESERVED_ATTRS = {
        'name', 'msg', 'args', 'created', 'filename', 'funcName',
        'levelname', 'levelno', 'lineno', 'module', 'msecs', 'message',
        'pathname', 'process', 'processName', 'relativeCreated',
        'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
        'taskName', 'request_id', 'user_id',
    }

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(dt_timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': PIIMasker.mask_text(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if hasattr(record, 'request_id'):
            log_data['request_id'] = record.request_id

        if hasattr(record, 'user_id'):
            log_data['user_id'] = record.user_id

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': PIIMasker.mask_text(str(record.exc_info[1])),
                'traceback': [PIIMasker.mask_text(line) for line in traceback.format_exception(*record.exc_info)],
            }

        # Add any extra fields
        for key, value in record.__dict__.items():
            if key in self.RESERVED_ATTRS or key.startswith('_'):
                continue
            if isinstance(value, dict):
                value = PIIMasker.mask_dict(value)
            elif isinstance(value, str):
                value = PIIMasker.mask_text(value)
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = PIIMasker.mask_text(str(value))

        return json.dumps(log_data)


class SanitizingFormatter(logging.Formatter):
    """
    Log formatter that redacts bearer tokens, JWTs and passwords.
    """

    PATTERNS = [
        # Bearer tokens
        (re.compile(r'Bearer\s+([a-zA-Z0-9_\-\.]{20,})', re.IGNORECASE), r'Bearer [REDACTED]'),

        # JWT tokens (header.payload.signature format)
        (re.compile(r'eyJ[a-zA-Z0-9_\-]+\.eyJ[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+'), r'[REDACTED_JWT]'),

        # Passwords
        (re.compile(r'password["\s:=]+([^\s,\]}"\']+)', re.IGNORECASE), r'password=[REDACTED]'),

        # Secrets
        (re.compile(r'secret["\s:=]+([a-zA-Z0-9_\-]{20,})', re.IGNORECASE), r'secret=[REDACTED]'),

        # Database URLs with passwords
        (re.compile(r'(\w+://[^:/\s]+:)([^@\s]+)(@)'), r'\1[REDACTED]\3'),
    ]

    @classmethod
    def sanitize(cls, message):
        for pattern, replacement in cls.PATTERNS:
            message = pattern.sub(replacement, message)
        return message

    def format(self, record):
        return self.sanitize(super().format(record))


class SanitizingFilter(logging.Filter):
    """
    Logging filter that sanitizes the message and string args before formatting.
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


class SecurityLogger:
    """
    Centralized logging for authorization and authentication events.

    Events are written to the 'security' logger with structured data.
    Critical events are also sent to Sentry for alerting.
    """

    CRITICAL_EVENTS = {
        'privilege_escalation_attempt',
    }

    @staticmethod
    def log_event(event_type: str, level: str = 'warning', **context):
        """
        Log a security event with structured data.

        Args:
            event_type: Type of security event (e.g., 'failed_login')
            level: Log level ('info', 'warning', 'error', 'critical')
            **context: Additional context data (ip_address, user_id, ...)
        """
        logger = logging.getLogger('security')

        log_data = {
            'event_type': event_type,
            'timestamp': timezone.now().isoformat(),
        }
        log_data.update(context)
        log_data = PIIMasker.mask_dict(log_data)

        log_method = getattr(logger, level, logger.warning)
        log_method(
            f"Security event: {event_type}",
            extra=log_data
        )

        if event_type in SecurityLogger.CRITICAL_EVENTS:
            sentry_sdk.capture_message(
                f"Critical security event: {event_type}",
                level='error',
            )

    @staticmethod
    def log_failed_login(login: str, ip_address: str, user_agent: str = None, reason: str = None):
        """Log a failed login attempt."""
        SecurityLogger.log_event(
            'failed_login',
            level='warning',
            login=login,
            ip_address=ip_address,
            user_agent=user_agent,
            reason=reason
        )

    @staticmethod
    def log_permission_denied(user, required_permissions, ip_address: str = None):
        """Log a request rejected for missing permissions."""
        SecurityLogger.log_event(
            'permission_denied',
            level='warning',
            user_id=getattr(user, 'id', None),
            required_permissions=sorted(required_permissions),
            ip_address=ip_address
        )

    @staticmethod
    def log_policy_denied(action: str, acting_user_id, target_type: str, target_id, reason: str):
        """
        Log a policy predicate that refused an action on a specific record.

        Attempts by a non-master user against a reserved role are reported
        as privilege escalation attempts.
        """
        event_type = 'privilege_escalation_attempt' if reason == 'reserved_role' else 'policy_denied'
        SecurityLogger.log_event(
            event_type,
            level='warning',
            action=action,
            acting_user_id=acting_user_id,
            target_type=target_type,
            target_id=target_id,
            reason=reason
        )

    @staticmethod
    def log_rate_limit_exceeded(endpoint: str, ip_address: str, limit: str = None):
        """Log a rate limit violation."""
        SecurityLogger.log_event(
            'rate_limit_exceeded',
            level='warning',
            endpoint=endpoint,
            ip_address=ip_address,
            limit=limit
        )
