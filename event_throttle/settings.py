
import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'django-insecure-dev-only-key')
DEBUG = os.environ.get('DJANGO_DEBUG', '0') == '1'
ALLOWED_HOSTS = os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',')

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'rest_framework',
    'throttler',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'event_throttle.urls'

if os.environ.get('POSTGRES_DB'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.environ['POSTGRES_DB'],
            'USER': os.environ.get('POSTGRES_USER', 'postgres'),
            'PASSWORD': os.environ.get('POSTGRES_PASSWORD', ''),
            'HOST': os.environ.get('POSTGRES_HOST', 'localhost'),
            'PORT': os.environ.get('POSTGRES_PORT', '5432'),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'
USE_TZ = True
TIME_ZONE = 'UTC'

REST_FRAMEWORK = {
    'DEFAULT_RENDERER_CLASSES': ['rest_framework.renderers.JSONRenderer'],
    'DEFAULT_PARSER_CLASSES': ['rest_framework.parsers.JSONParser'],
}

REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')

# --- Трекер событий ---
EVENT_TRACKER = {
    'BACKEND': os.environ.get('EVENT_TRACKER_BACKEND', 'redis'),
    'REDIS_URL': REDIS_URL,
    'STRATEGY': os.environ.get('EVENT_TRACKER_STRATEGY', 'counter'),
    'LIMIT': int(os.environ.get('EVENT_TRACKER_LIMIT', 5)),
    'DEFER_INTERVAL': float(os.environ.get('EVENT_TRACKER_DEFER_INTERVAL', 60 * 60)),
    'EXPIRE_TIME': float(os.environ.get('EVENT_TRACKER_EXPIRE_TIME', 24 * 60 * 60)),
    'MAX_KEYS': int(os.environ.get('EVENT_TRACKER_MAX_KEYS', 0)),
    'BUCKET_SIZE': int(os.environ.get('EVENT_TRACKER_BUCKET_SIZE', 10)),
    'REFILL_RATE': float(os.environ.get('EVENT_TRACKER_REFILL_RATE', 1)),
    'PROCESSING_INTERVAL': float(os.environ.get('EVENT_TRACKER_PROCESSING_INTERVAL', 10)),
}

# --- Celery ---
CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL', REDIS_URL)
CELERY_TASK_IGNORE_RESULT = True
CELERY_BEAT_SCHEDULE = {
    'process-deferred-events': {
        'task': 'throttler.tasks.process_deferred_events',
        'schedule': EVENT_TRACKER['PROCESSING_INTERVAL'],
    },
}

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': os.environ.get('LOG_LEVEL', 'INFO'),
    },
    'loggers': {
        'throttler': {
            'level': os.environ.get('THROTTLER_LOG_LEVEL', 'INFO'),
        },
    },
}
