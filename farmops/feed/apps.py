from django.apps import AppConfig


class FeedConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'farmops.feed'

    def ready(self):
        """Import signals when app is ready"""
        import farmops.feed.signals  # noqa: F401  # Cache invalidation signals
