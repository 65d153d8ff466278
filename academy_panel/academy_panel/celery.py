"""Celery app: order notifications and periodic domain verification."""
import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "academy_panel.settings")

app = Celery("academy_panel")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

app.conf.beat_schedule = {
    'verify-pending-domains': {
        'task': 'dealers.tasks.verify_pending_domains',
        'schedule': 60.0 * int(os.environ.get('DOMAIN_VERIFY_INTERVAL_MINUTES', '30')),
    },
}
