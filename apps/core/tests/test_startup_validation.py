"""
Tests for CoreConfig startup validation.
"""
import pytest
from django.apps import apps
from django.core.exceptions import ImproperlyConfigured


@pytest.fixture
def core_config():
    return apps.get_app_config('core')


class TestJWTValidation:

    def test_default_settings_pass(self, core_config):
        core_config.validate_jwt_configuration()

    def test_short_key(self, core_config, settings):
        settings.JWT_SECRET_KEY = 'short_key_123'
        with pytest.raises(ImproperlyConfigured, match='at least 32 characters'):
            core_config.validate_jwt_configuration()

    def test_key_must_differ_from_secret_key(self, core_config, settings):
        settings.JWT_SECRET_KEY = settings.SECRET_KEY
        with pytest.raises(ImproperlyConfigured, match='different from SECRET_KEY'):
            core_config.validate_jwt_configuration()

    def test_low_entropy(self, core_config, settings):
        settings.JWT_SECRET_KEY = 'ab' * 20
        with pytest.raises(ImproperlyConfigured, match='insufficient entropy'):
            core_config.validate_jwt_configuration()


class TestSecuritySettings:

    def test_weak_secret_key_in_production(self, core_config, settings):
        settings.DEBUG = False
        settings.SECRET_KEY = 'change-me-' + 'x' * 50
        with pytest.raises(ImproperlyConfigured, match='change-me'):
            core_config.validate_security_settings()

    def test_weak_secret_key_allowed_in_debug(self, core_config, settings):
        settings.DEBUG = True
        settings.SECRET_KEY = 'change-me-' + 'x' * 50
        core_config.validate_security_settings()
