"""
Tests for structured logging, PII masking and the security event logger.
"""
import json
import logging
import sys
from unittest.mock import patch
from django.test import SimpleTestCase
from apps.core.logging import JSONFormatter, PIIMasker, PIIMaskingFilter, SecurityLogger


class PIIMaskerTestCase(SimpleTestCase):
    """Test PII masking functionality."""

    def test_mask_email_addresses(self):
        """Test email address masking."""
        text = "Contact user@example.com or admin@test.org"
        masked = PIIMasker.mask_email(text)

        self.assertIn("u***@example.com", masked)
        self.assertNotIn("user@example.com", masked)
        self.assertIn("a****@test.org", masked)
        self.assertNotIn("admin@test.org", masked)

    def test_mask_secrets(self):
        """Test API key and token masking."""
        text = 'api_key: "sk_live_abc123" and token=xyz789'
        masked = PIIMasker.mask_secrets(text)

        self.assertIn("api_key: ********", masked)
        self.assertNotIn("sk_live_abc123", masked)
        self.assertIn("token: ********", masked)
        self.assertNotIn("xyz789", masked)

    def test_mask_bearer_token(self):
        masked = PIIMasker.mask_text("header was Bearer eyJhbGciOi.eyJ1c2VyX2lk.c2lnbmF0dXJl")

        self.assertIn("Bearer ********", masked)
        self.assertNotIn("eyJ1c2VyX2lk", masked)

    def test_non_strings_pass_through(self):
        self.assertEqual(PIIMasker.mask_text(42), 42)
        self.assertIsNone(PIIMasker.mask_email(None))

    def test_mask_dict_sensitive_fields(self):
        """Test masking sensitive fields in dictionaries."""
        data = {
            'name': 'John Doe',
            'email': 'john@example.com',
            'token': 'abc.def.ghi',
            'nested': {'password': 'hunter2', 'role': 'OWNER'},
            'recipients': ['jane@example.com', 7],
            'count': 3,
        }
        masked = PIIMasker.mask_dict(data)

        self.assertEqual(masked['name'], 'John Doe')
        self.assertEqual(masked['email'], 'j***@example.com')
        self.assertEqual(masked['token'], '********')
        self.assertEqual(masked['nested'], {'password': '********', 'role': 'OWNER'})
        self.assertEqual(masked['recipients'], ['j***@example.com', 7])
        self.assertEqual(masked['count'], 3)

    def test_mask_dict_keeps_empty_secret(self):
        self.assertEqual(PIIMasker.mask_dict({'token': None}), {'token': None})


class PIIMaskingFilterTestCase(SimpleTestCase):

    def _record(self, msg, args=()):
        return logging.LogRecord('apps.test', logging.INFO, __file__, 1, msg, args, None)

    def test_masks_message(self):
        record = self._record("Granted admin to bob@example.com")

        self.assertTrue(PIIMaskingFilter().filter(record))
        self.assertEqual(record.getMessage(), "Granted admin to b**@example.com")

    def test_masks_args(self):
        record = self._record("Granted admin to %s", ('bob@example.com',))
        PIIMaskingFilter().filter(record)

        self.assertEqual(record.getMessage(), "Granted admin to b**@example.com")


class JSONFormatterTestCase(SimpleTestCase):
    """Test JSON log formatting."""

    def test_format_includes_context_and_masks(self):
        record = logging.LogRecord(
            'apps.rbac', logging.WARNING, __file__, 10,
            "Denied carol@example.com", (), None
        )
        record.request_id = 'req-123'
        record.user_email = 'carol@example.com'
        record.details = {'secret': 'shh', 'resource': 'tenant'}

        payload = json.loads(JSONFormatter().format(record))

        self.assertEqual(payload['level'], 'WARNING')
        self.assertEqual(payload['logger'], 'apps.rbac')
        self.assertEqual(payload['request_id'], 'req-123')
        self.assertEqual(payload['message'], "Denied c****@example.com")
        self.assertEqual(payload['user_email'], 'c****@example.com')
        self.assertEqual(payload['details'], {'secret': '********', 'resource': 'tenant'})
        self.assertTrue(payload['timestamp'].endswith('Z'))

    def test_format_exception(self):
        try:
            raise RuntimeError("token=abc123")
        except RuntimeError:
            record = logging.LogRecord('apps', logging.ERROR, __file__, 1, "boom", (), sys.exc_info())

        payload = json.loads(JSONFormatter().format(record))

        self.assertEqual(payload['exception']['type'], 'RuntimeError')
        self.assertNotIn('abc123', payload['exception']['message'])

    def test_unserializable_extra_is_stringified(self):
        record = logging.LogRecord('apps', logging.INFO, __file__, 1, "msg", (), None)
        record.thing = object()

        payload = json.loads(JSONFormatter().format(record))

        self.assertIn('object', payload['thing'])


class SecurityLoggerTestCase(SimpleTestCase):
    """Test security event logging."""

    @patch('apps.core.logging.sentry_sdk.capture_message')
    def test_permission_denied_is_logged_not_alerted(self, mock_capture):
        with self.assertLogs('security', level='WARNING') as logs:
            SecurityLogger.log_permission_denied(
                user_id='u-1', resource='tenant', action='delete', role='OWNER', tenant_id='t-1'
            )

        self.assertEqual(len(logs.records), 1)
        record = logs.records[0]
        self.assertEqual(record.event_type, 'permission_denied')
        self.assertEqual(record.resource, 'tenant')
        self.assertEqual(record.role, 'OWNER')
        mock_capture.assert_not_called()

    @patch('apps.core.logging.sentry_sdk.capture_message')
    def test_privilege_escalation_goes_to_sentry(self, mock_capture):
        with self.assertLogs('security', level='ERROR') as logs:
            SecurityLogger.log_privilege_escalation_attempt(
                user_id='u-2', operation='delete_tenant', user_email='mallory@example.com'
            )

        self.assertEqual(logs.records[0].user_email, 'm******@example.com')
        mock_capture.assert_called_once()
        self.assertIn('privilege_escalation_attempt', mock_capture.call_args[0][0])

    @patch('apps.core.logging.sentry_sdk.capture_message')
    def test_last_master_admin_protection_goes_to_sentry(self, mock_capture):
        with self.assertLogs('security', level='ERROR'):
            SecurityLogger.log_last_master_admin_protection(actor_id=None, target_id='u-3')

        mock_capture.assert_called_once()

    def test_authentication_failed(self):
        with self.assertLogs('security', level='WARNING') as logs:
            SecurityLogger.log_authentication_failed('bad token', ip_address='10.0.0.1', path='/v1/tenants')

        self.assertEqual(logs.records[0].event_type, 'authentication_failed')
        self.assertEqual(logs.records[0].path, '/v1/tenants')
