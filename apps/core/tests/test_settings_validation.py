"""
Tests for startup validation of secrets.

Validates:
- JWT_SECRET_KEY length, reuse and entropy requirements
- SECRET_KEY weak-value detection outside DEBUG
- The default cache configuration
"""
import os

import pytest
from django.apps import apps
from django.conf import settings
from django.core.cache import caches
from django.core.exceptions import ImproperlyConfigured
from django.test import override_settings

STRONG_JWT_KEY = 'Zx9-Qw7_Er5Ty3Ui1Op0As2Df4Gh6Jk8LmNb'
STRONG_SECRET_KEY = 'p7R_k2LwQ9zX-c4VbN8mT1yH6gJ3sD0fA5eU_iO-rW2qE7tY9uI4oP1aS6dF3gH8j'


def run_startup_checks():
    apps.get_app_config('core').ready()


class TestStartupValidation:
    """Test CoreConfig.ready() secret checks."""

    @override_settings(ENFORCE_SECURE_CONFIG=False, JWT_SECRET_KEY='short')
    def test_disabled_by_default(self):
        run_startup_checks()

    @override_settings(ENFORCE_SECURE_CONFIG=True, SECRET_KEY=STRONG_SECRET_KEY, JWT_SECRET_KEY=STRONG_JWT_KEY)
    def test_strong_configuration_passes(self):
        run_startup_checks()

    @override_settings(ENFORCE_SECURE_CONFIG=True, SECRET_KEY=STRONG_SECRET_KEY, JWT_SECRET_KEY='')
    def test_missing_jwt_key(self):
        with pytest.raises(ImproperlyConfigured, match='must be set'):
            run_startup_checks()

    @override_settings(ENFORCE_SECURE_CONFIG=True, SECRET_KEY=STRONG_SECRET_KEY, JWT_SECRET_KEY='short_key_123')
    def test_short_jwt_key(self):
        with pytest.raises(ImproperlyConfigured, match='at least 32 characters'):
            run_startup_checks()

    @override_settings(ENFORCE_SECURE_CONFIG=True, SECRET_KEY=STRONG_JWT_KEY, JWT_SECRET_KEY=STRONG_JWT_KEY)
    def test_jwt_key_reusing_secret_key(self):
        with pytest.raises(ImproperlyConfigured, match='different from SECRET_KEY'):
            run_startup_checks()

    @override_settings(ENFORCE_SECURE_CONFIG=True, SECRET_KEY=STRONG_SECRET_KEY, JWT_SECRET_KEY='ab' * 20)
    def test_low_entropy_jwt_key(self):
        with pytest.raises(ImproperlyConfigured, match='insufficient entropy'):
            run_startup_checks()

    @override_settings(
        ENFORCE_SECURE_CONFIG=True,
        DEBUG=False,
        SECRET_KEY='django-insecure-' + STRONG_SECRET_KEY,
        JWT_SECRET_KEY=STRONG_JWT_KEY
    )
    def test_weak_secret_key_outside_debug(self):
        with pytest.raises(ImproperlyConfigured, match='weak value'):
            run_startup_checks()

    @override_settings(
        ENFORCE_SECURE_CONFIG=True,
        DEBUG=True,
        SECRET_KEY='django-insecure-' + STRONG_SECRET_KEY,
        JWT_SECRET_KEY=STRONG_JWT_KEY
    )
    def test_weak_secret_key_tolerated_in_debug(self):
        run_startup_checks()


@pytest.mark.skipif('CACHE_URL' in os.environ, reason='cache configured from the environment')
class TestDefaultCache:
    """The settings module loads with no CACHE_URL set."""

    def test_default_is_local_memory(self):
        assert settings.CACHES['default']['BACKEND'] == 'django.core.cache.backends.locmem.LocMemCache'
        assert settings.CACHES['default']['LOCATION'] == 'warden'

    def test_rate_limit_cache_is_usable(self):
        cache = caches[settings.RATELIMIT_USE_CACHE]
        cache.set('ratelimit-check', 1, 5)

        assert cache.get('ratelimit-check') == 1
