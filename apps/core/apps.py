from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
import logging
import sys

logger = logging.getLogger(__name__)

KEY_HINT = "Generate a strong key with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """
        Perform startup validation checks when Django initializes.

        Only the server processes are validated so that migrations, shell
        and seeding commands run without full configuration.
        """
        is_server = 'runserver' in sys.argv or 'gunicorn' in sys.argv[0]
        if not is_server:
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
        """Refuse obviously weak secrets outside DEBUG."""
        if settings.DEBUG:
            return

        secret_lower = (settings.SECRET_KEY or '').lower()
        for pattern in ('django-insecure', 'change-me', 'your-secret-key'):
            if pattern in secret_lower:
                raise ImproperlyConfigured(
                    f"SECRET_KEY appears to be a default or weak value (contains '{pattern}'). {KEY_HINT}"
                )

        if not getattr(settings, 'SECURE_SSL_REDIRECT', False):
            logger.warning(
                "SECURE_SSL_REDIRECT is not enabled in production. "
                "HTTPS should be enforced for security."
            )
