from django.apps import AppConfig


class DealersConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'dealers'
    verbose_name = 'Dealers (multi-tenant)'

    def ready(self):
        # Автоинвалидация кеша middleware
        import dealers.signals  # noqa: F401
