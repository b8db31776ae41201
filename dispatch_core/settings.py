"""
Django settings for the DISPATCH driver agent.
Cure & Care Dispatch - Offline Sync Layer

Configuration optimised for:
- Device-local durable store (file-based cache)
- Remote dispatch API replay (JSON over HTTPS, bearer token)
- Celery beat for periodic queue drains
"""

from pathlib import Path
from decouple import config, Csv

# ===========================================
# BASE CONFIGURATION
# ===========================================
BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = config('SECRET_KEY', default='dev-secret-key-change-in-production')
DEBUG = config('DEBUG', default=True, cast=bool)
ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,127.0.0.1,0.0.0.0,testserver', cast=Csv())

# ===========================================
# APPLICATION DEFINITION
# ===========================================
INSTALLED_APPS = [
    # Django Core
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'django.contrib.staticfiles',

    # Third Party
    'rest_framework',
    'corsheaders',

    # DISPATCH Apps
    'offline.apps.OfflineConfig',      # Offline queue, GPS validation, sync engine
]


MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'dispatch_core.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
            ],
        },
    },
]

WSGI_APPLICATION = 'dispatch_core.wsgi.application'

# ===========================================
# DATABASE
# ===========================================
# The agent keeps no relational state of its own; SQLite only backs
# Django internals.
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': config('DB_PATH', default=str(BASE_DIR / 'db.sqlite3')),
    }
}

# ===========================================
# INTERNATIONALIZATION
# ===========================================
LANGUAGE_CODE = 'en-in'
TIME_ZONE = 'Asia/Kolkata'
USE_I18N = True
USE_TZ = True

# ===========================================
# STATIC FILES
# ===========================================
STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# ===========================================
# DEFAULT PRIMARY KEY
# ===========================================
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# ===========================================
# DJANGO REST FRAMEWORK
# ===========================================
# The local API is bound to the device and consumed by the driver web app;
# the remote dispatch API enforces authentication.
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.AllowAny',
    ],
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'UNAUTHENTICATED_USER': None,
}

# ===========================================
# CORS (Cross-Origin Resource Sharing)
# ===========================================
CORS_ALLOWED_ORIGINS = config(
    'CORS_ALLOWED_ORIGINS',
    default='http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000',
    cast=Csv()
)
CORS_ALLOW_CREDENTIALS = True

# ===========================================
# LOCAL DURABLE STORE (Offline Queue)
# ===========================================
OFFLINE_STORE_DIR = config('OFFLINE_STORE_DIR', default=str(BASE_DIR / '.offline_store'))
OFFLINE_CACHE_ALIAS = config('OFFLINE_CACHE_ALIAS', default='offline')

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'dispatch-default',
    },
    # Survives agent restarts; never culled (a handful of keys only)
    'offline': {
        'BACKEND': 'django.core.cache.backends.filebased.FileBasedCache',
        'LOCATION': OFFLINE_STORE_DIR,
        'TIMEOUT': None,
        'OPTIONS': {
            'MAX_ENTRIES': 10000,
        },
    },
}

# ===========================================
# REMOTE DISPATCH API
# ===========================================
DISPATCH_API_URL = config('DISPATCH_API_URL', default='http://localhost:3000/api')
OFFLINE_REQUEST_TIMEOUT = config('OFFLINE_REQUEST_TIMEOUT', default=15, cast=int)   # seconds

# ===========================================
# OFFLINE SYNC RULES
# ===========================================
OFFLINE_AUTO_SYNC_INTERVAL = config('OFFLINE_AUTO_SYNC_INTERVAL', default=30, cast=int)        # seconds
OFFLINE_CONNECTIVITY_INTERVAL = config('OFFLINE_CONNECTIVITY_INTERVAL', default=5, cast=int)   # seconds
OFFLINE_MAX_TRACKING_BACKLOG = config('OFFLINE_MAX_TRACKING_BACKLOG', default=500, cast=int)   # location fixes

# ===========================================
# CELERY CONFIGURATION
# ===========================================
CELERY_BROKER_URL = config('CELERY_BROKER_URL', default='redis://localhost:6379/0')
CELERY_RESULT_BACKEND = config('CELERY_RESULT_BACKEND', default='redis://localhost:6379/0')
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_ALWAYS_EAGER = config('CELERY_TASK_ALWAYS_EAGER', default=False, cast=bool)

# Celery Beat Schedule (Periodic Tasks)
CELERY_BEAT_SCHEDULE = {
    # Drain the offline queue every 30 seconds
    'process-offline-queue': {
        'task': 'offline.tasks.process_offline_queue',
        'schedule': float(OFFLINE_AUTO_SYNC_INTERVAL),
    },
}

# ===========================================
# LOGGING CONFIGURATION
# ===========================================
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
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
        'level': 'INFO',
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': config('DJANGO_LOG_LEVEL', default='INFO'),
            'propagate': False,
        },
        'offline': {
            'handlers': ['console'],
            'level': config('OFFLINE_LOG_LEVEL', default='INFO'),
            'propagate': False,
        },
        'dispatch.monitoring': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'celery': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}
