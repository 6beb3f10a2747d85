"""
Celery application for background and scheduled tasks.

Start a worker with beat:
    celery -A config worker --beat -l info
"""
import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('docuflow')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
