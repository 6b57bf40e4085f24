"""
Love Journey - App Configuration

Builds the process-wide Store once Django has loaded settings.
"""

from django.apps import AppConfig, apps
from django.conf import settings


class JourneyConfig(AppConfig):
    name = 'journey'
    verbose_name = 'Love Journey'

    store = None

    def ready(self):
        self.reset_store()

    def reset_store(self, store=None):
        """Install a fresh Store (or the one given) and return it."""
        from .store import Store

        if store is None:
            store = Store(max_code_attempts=settings.PARTNER_CODE_MAX_ATTEMPTS)
        self.store = store
        return store


def get_store():
    """The Store owned by the running app."""
    return apps.get_app_config('journey').store
