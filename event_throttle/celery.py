# event_throttle/celery.py
import os
from celery import Celery


os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'event_throttle.settings')


app = Celery('event_throttle')


app.config_from_object('django.conf:settings', namespace='CELERY')


app.autodiscover_tasks()
