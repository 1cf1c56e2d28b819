from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
import logging

logger = logging.getLogger(__name__)

KEY_HINT = "Generate a strong key with: python -c \"import secrets; print(secrets.token_urlsafe(50))\""


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """
        Perform startup validation checks when Django initializes.

        Runs only when ENFORCE_SECURE_CONFIG is enabled so local tooling and
        the test suite can start with development defaults.
        """
        if not getattr(settings, 'ENFORCE_SECURE_CONFIG', False):
            return

        self._validate_jwt_configuration()
        self._validate_security_settings()

        logger.info("All startup security validations passed")

    def _validate_jwt_configuration(self):
        """Validate JWT secret key configuration."""
        jwt_secret = getattr(settings, 'JWT_SECRET_KEY', None)
        secret_key = getattr(settings, 'SECRET_KEY', None)

        if not jwt_secret:
            raise ImproperlyConfigured(f"JWT_SECRET_KEY must be set in environment variables. {KEY_HINT}")

        if len(jwt_secret) < 32:
            raise ImproperlyConfigured(
                f"JWT_SECRET_KEY must be at least 32 characters long. "
                f"Current length: {len(jwt_secret)}. {KEY_HINT}"
            )

        if jwt_secret == secret_key:
            raise ImproperlyConfigured(f"JWT_SECRET_KEY must be different from SECRET_KEY. {KEY_HINT}")

        unique_chars = len(set(jwt_secret))
        if unique_chars < 16:
            raise ImproperlyConfigured(
                f"JWT_SECRET_KEY has insufficient entropy. "
                f"Found only {unique_chars} unique characters, need at least 16. {KEY_HINT}"
            )

        logger.info("JWT configuration validated")

    def _validate_security_settings(self):
        """Validate SECRET_KEY and production flags."""
        secret_key = getattr(settings, 'SECRET_KEY', None)

        if not secret_key:
            raise ImproperlyConfigured(f"SECRET_KEY must be set in environment variables. {KEY_HINT}")

        if len(secret_key) < 50:
            logger.warning(
                f"SECRET_KEY is shorter than recommended "
                f"(current: {len(secret_key)}, recommended: 50+)"
            )

        if not getattr(settings, 'DEBUG', False):
            secret_lower = secret_key.lower()
            for pattern in ('change-me', 'insecure', 'django-insecure', '12345', 'password'):
                if pattern in secret_lower:
                    raise ImproperlyConfigured(
                        f"SECRET_KEY appears to be a default or weak value (contains '{pattern}'). {KEY_HINT}"
                    )
