from django.apps import AppConfig


class VotersConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'voters'
