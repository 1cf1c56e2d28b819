"""
Structured logging: PII masking, a JSON formatter and the security event logger.
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
    Utility class to mask sensitive data in logs.

    Email addresses keep their first character and domain; bearer tokens,
    secrets and keys are replaced outright.
    """

    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')
    SECRET_PATTERN = re.compile(
        r'(api[_-]?key|token|secret|password|authorization)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)',
        re.IGNORECASE
    )
    BEARER_PATTERN = re.compile(r'(Bearer)\s+[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]*')

    # Field names whose values are replaced entirely
    SENSITIVE_FIELDS = {
        'password', 'passwd',
        'token', 'access_token', 'refresh_token', 'bearer_token', 'jwt',
        'secret', 'secret_key', 'api_key',
        'authorization',
    }

    # Field names whose values are masked as email addresses
    EMAIL_FIELDS = {'email', 'user_email', 'actor_email', 'target_email'}

    @classmethod
    def mask_email(cls, text):
        """Mask email addresses in text."""
        if not isinstance(text, str):
            return text

        def mask_email_match(match):
            username, _, domain = match.group(0).partition('@')
            if len(username) > 1:
                username = username[0] + '*' * (len(username) - 1)
            return f"{username}@{domain}"

        return cls.EMAIL_PATTERN.sub(mask_email_match, text)

    @classmethod
    def mask_secrets(cls, text):
        """Mask bearer tokens, keys and secrets in text."""
        if not isinstance(text, str):
            return text
        text = cls.BEARER_PATTERN.sub(r'\1 ********', text)
        return cls.SECRET_PATTERN.sub(r'\1: ********', text)

    @classmethod
    def mask_text(cls, text):
        """Apply all masking patterns to text."""
        if not isinstance(text, str):
            return text
        return cls.mask_secrets(cls.mask_email(text))

    @classmethod
    def mask_dict(cls, data):
        """Recursively mask sensitive data in dictionaries."""
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            lowered = str(key).lower()
            if lowered in cls.SENSITIVE_FIELDS:
                masked[key] = '********' if value else value
            elif lowered in cls.EMAIL_FIELDS and isinstance(value, str):
                masked[key] = cls.mask_email(value)
            elif isinstance(value, dict):
                masked[key] = cls.mask_dict(value)
            elif isinstance(value, list):
                masked[key] = [
                    cls.mask_dict(item) if isinstance(item, dict) else cls.mask_text(item)
                    for item in value
                ]
            elif isinstance(value, str):
                masked[key] = cls.mask_text(value)
            else:
                masked[key] = value

        return masked


class PIIMaskingFilter(logging.Filter):
    """
    Logging filter that masks emails and secrets in the message and its args.

    Attached to plain-text handlers; JSONFormatter masks on its own.
    """

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = PIIMasker.mask_text(record.msg)

        if isinstance(record.args, tuple):
            record.args = tuple(PIIMasker.mask_text(arg) for arg in record.args)
        elif isinstance(record.args, dict):
            record.args = PIIMasker.mask_dict(record.args)

        return True


class JSONFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.
    Includes request_id and tenant_id from extra fields if available.
    Automatically masks sensitive data.
    """

    RESERVED_ATTRS = {
        'name', 'msg', 'args', 'created', 'filename', 'funcName',
        'levelname', 'levelno', 'lineno', 'module', 'msecs', 'message',
        'pathname', 'process', 'processName', 'relativeCreated',
        'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
        'taskName', 'request_id', 'tenant_id',
    }

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(dt_timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': PIIMasker.mask_text(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if hasattr(record, 'request_id'):
            log_data['request_id'] = record.request_id

        if hasattr(record, 'tenant_id'):
            log_data['tenant_id'] = str(record.tenant_id)

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': PIIMasker.mask_text(str(record.exc_info[1])),
                'traceback': [
                    PIIMasker.mask_text(line)
                    for line in traceback.format_exception(*record.exc_info)
                ],
            }

        for key, value in record.__dict__.items():
            if key in self.RESERVED_ATTRS or key.startswith('_'):
                continue
            if isinstance(value, dict):
                masked_value = PIIMasker.mask_dict(value)
            elif key.lower() in PIIMasker.SENSITIVE_FIELDS:
                masked_value = '********'
            elif key.lower() in PIIMasker.EMAIL_FIELDS:
                masked_value = PIIMasker.mask_email(value)
            elif isinstance(value, str):
                masked_value = PIIMasker.mask_text(value)
            else:
                masked_value = value

            try:
                json.dumps(masked_value)
                log_data[key] = masked_value
            except (TypeError, ValueError):
                log_data[key] = PIIMasker.mask_text(str(value))

        return json.dumps(log_data)


class SecurityLogger:
    """
    Centralized logging for authorization and administration security events.

    Every event goes to the 'security' logger with structured context.
    Events in CRITICAL_EVENTS are also sent to Sentry for alerting.
    Denials are logged here and never written to the audit log.
    """

    CRITICAL_EVENTS = {
        'privilege_escalation_attempt',
        'last_master_admin_protection',
    }

    @staticmethod
    def log_event(event_type: str, level: str = 'warning', **context):
        """
        Log a security event with structured data.

        Args:
            event_type: Type of security event (e.g., 'permission_denied')
            level: Log level ('info', 'warning', 'error', 'critical')
            **context: Additional context data (user_id, tenant_id, resource, etc.)

        Example:
            >>> SecurityLogger.log_event(
            ...     'permission_denied',
            ...     user_id='123',
            ...     resource='tenant',
            ...     action='delete'
            ... )
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
                extras=log_data
            )

    @staticmethod
    def log_permission_denied(user_id, resource: str, action: str, role: str = None, tenant_id=None):
        """
        Log a policy denial.

        Args:
            user_id: ID of the actor that was denied
            resource: Resource that was requested
            action: Action that was requested
            role: Role the actor held in the tenant (if any)
            tenant_id: Tenant ID (if tenant-scoped)
        """
        SecurityLogger.log_event(
            'permission_denied',
            level='warning',
            user_id=str(user_id) if user_id else None,
            resource=resource,
            action=action,
            role=role,
            tenant_id=str(tenant_id) if tenant_id else None
        )

    @staticmethod
    def log_privilege_escalation_attempt(user_id, operation: str, user_email: str = None):
        """
        Log a non-master-admin attempting a master-admin-only operation.

        Args:
            user_id: ID of the actor
            operation: Privileged operation that was attempted
            user_email: Email of the actor
        """
        SecurityLogger.log_event(
            'privilege_escalation_attempt',
            level='error',
            user_id=str(user_id) if user_id else None,
            user_email=user_email,
            operation=operation
        )

    @staticmethod
    def log_self_admin_modification(user_id, user_email: str = None):
        """Log a master admin attempting to change their own admin status."""
        SecurityLogger.log_event(
            'self_admin_modification',
            level='warning',
            user_id=str(user_id) if user_id else None,
            user_email=user_email
        )

    @staticmethod
    def log_last_master_admin_protection(actor_id, target_id):
        """Log a rejected attempt to remove the last master administrator."""
        SecurityLogger.log_event(
            'last_master_admin_protection',
            level='error',
            actor_id=str(actor_id) if actor_id else None,
            target_id=str(target_id)
        )

    @staticmethod
    def log_authentication_failed(reason: str, ip_address: str = None, path: str = None):
        """
        Log a rejected bearer token.

        Args:
            reason: Why the token was rejected
            ip_address: IP address of the request
            path: Requested path
        """
        SecurityLogger.log_event(
            'authentication_failed',
            level='warning',
            reason=reason,
            ip_address=ip_address,
            path=path
        )

    @staticmethod
    def log_rate_limit_exceeded(
        endpoint: str,
        ip_address: str,
        user_email: str = None,
        limit: str = None
    ):
        """
        Log a rate limit violation.

        Args:
            endpoint: API endpoint that was rate limited
            ip_address: IP address of the request
            user_email: Email of the user (if authenticated)
            limit: Rate limit that was exceeded (e.g., '30/m')
        """
        SecurityLogger.log_event(
            'rate_limit_exceeded',
            level='warning',
            endpoint=endpoint,
            ip_address=ip_address,
            user_email=user_email,
            limit=limit
        )
