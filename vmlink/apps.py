from django.apps import AppConfig


class VmlinkConfig(AppConfig):
    """Configuration for the vmlink Django app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'vmlink'
