"""
Development settings - локальная разработка
"""
from .settings import *  # noqa: F401,F403

DEBUG = True
ALLOWED_HOSTS = ['*']

# Локальные хосты вида demo.localhost резолвятся как субдомены
MAIN_DOMAIN = 'localhost'

EMAIL_BACKEND = 'django.core.mail.backends.console.EmailBackend'

# Задачи выполняются синхронно, без брокера
CELERY_TASK_ALWAYS_EAGER = True

LOGGING['root']['level'] = 'DEBUG'  # noqa: F405
