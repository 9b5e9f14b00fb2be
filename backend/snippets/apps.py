"""
Snippets App Configuration
"""
import atexit

from django.apps import AppConfig


class SnippetsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'snippets'

    def ready(self):
        # Import signals when app is ready
        import snippets.signals  # noqa

        # Pooled HTTP session to the execution service is torn down on exit
        from .execution import close_session
        atexit.register(close_session)
