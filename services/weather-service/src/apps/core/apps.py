from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    label = 'core'
    verbose_name = 'Weather Service Core'

    def ready(self):
        """Load the minima table once at startup."""
        from .minima import load_minima_profiles
        load_minima_profiles()
