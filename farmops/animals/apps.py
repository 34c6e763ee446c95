from django.apps import AppConfig


class AnimalsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'farmops.animals'

    def ready(self):
        """Import signals when app is ready"""
        import farmops.animals.signals  # noqa: F401
