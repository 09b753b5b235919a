"""Base settings for Weather Service."""
import os
import sys
from pathlib import Path

from celery.schedules import crontab

BASE_DIR = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(BASE_DIR.parent.parent.parent))

SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key')
DEBUG = os.environ.get('DEBUG', 'True').lower() == 'true'
ALLOWED_HOSTS = os.environ.get('ALLOWED_HOSTS', '*').split(',')

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'corsheaders',
    'django_filters',
    'drf_spectacular',
    'apps.core',
    'apps.api',
]

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
    'shared.common.middleware.RequestIDMiddleware',
    'shared.common.middleware.LoggingMiddleware',
]

ROOT_URLCONF = 'config.urls'
TEMPLATES = [{'BACKEND': 'django.template.backends.django.DjangoTemplates', 'DIRS': [], 'APP_DIRS': True, 'OPTIONS': {'context_processors': ['django.template.context_processors.debug', 'django.template.context_processors.request', 'django.contrib.auth.context_processors.auth', 'django.contrib.messages.context_processors.messages']}}]
WSGI_APPLICATION = 'config.wsgi.application'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': os.environ.get('DB_NAME', 'weather_service_db'),
        'USER': os.environ.get('DB_USER', 'weather_service_user'),
        'PASSWORD': os.environ.get('DB_PASSWORD', 'weather_service_password'),
        'HOST': os.environ.get('DB_HOST', 'pgbouncer'),
        'PORT': os.environ.get('DB_PORT', '6432'),
    }
}

AUTH_PASSWORD_VALIDATORS = [{'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'}]
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True
STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Time zone used to interpret instructor availability windows
SCHOOL_TIME_ZONE = os.environ.get('SCHOOL_TIME_ZONE', 'America/Chicago')

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': ['shared.common.authentication.JWTAuthentication'],
    'DEFAULT_PERMISSION_CLASSES': ['rest_framework.permissions.IsAuthenticated'],
    'DEFAULT_PAGINATION_CLASS': 'shared.common.pagination.StandardPagination',
    'PAGE_SIZE': 20,
    'DEFAULT_FILTER_BACKENDS': ['django_filters.rest_framework.DjangoFilterBackend', 'rest_framework.filters.OrderingFilter'],
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
    'EXCEPTION_HANDLER': 'shared.common.exceptions.custom_exception_handler',
}

SPECTACULAR_SETTINGS = {
    'TITLE': 'Weather Service API',
    'DESCRIPTION': 'Weather conflict detection and AI rescheduling',
    'VERSION': '1.0.0',
}

CORS_ALLOW_ALL_ORIGINS = DEBUG
REDIS_URL = os.environ.get('REDIS_URL', 'redis://redis:6379/9')
CACHES = {'default': {'BACKEND': 'django_redis.cache.RedisCache', 'LOCATION': REDIS_URL}}

# Celery Configuration
CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL', REDIS_URL)
CELERY_RESULT_BACKEND = os.environ.get('CELERY_RESULT_BACKEND', REDIS_URL)
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 300  # 5 minutes
CELERY_TASK_ACKS_LATE = True

CELERY_BEAT_SCHEDULE = {
    'run-weather-check': {
        'task': 'apps.core.tasks.run_weather_check',
        'schedule': crontab(minute=0),  # Every hour
    },
    'redrive-stale-conflicts': {
        'task': 'apps.core.tasks.redrive_stale_conflicts',
        'schedule': crontab(minute='*/15'),  # Every 15 minutes
    },
}

# Weather provider (WeatherAPI.com)
WEATHER_API_URL = os.environ.get('WEATHER_API_URL', 'https://api.weatherapi.com/v1')
WEATHER_API_KEY = os.environ.get('WEATHER_API_KEY', '')
WEATHER_API_TIMEOUT = float(os.environ.get('WEATHER_API_TIMEOUT', 10))
WEATHER_API_MAX_ATTEMPTS = int(os.environ.get('WEATHER_API_MAX_ATTEMPTS', 2))
WEATHER_FORECAST_HORIZON_HOURS = int(os.environ.get('WEATHER_FORECAST_HORIZON_HOURS', 72))
WEATHER_CACHE_TTL_SECONDS = int(os.environ.get('WEATHER_CACHE_TTL_SECONDS', 1800))

# Upstream circuit breaker
UPSTREAM_FAILURE_THRESHOLD = int(os.environ.get('UPSTREAM_FAILURE_THRESHOLD', 5))
UPSTREAM_RESET_SECONDS = float(os.environ.get('UPSTREAM_RESET_SECONDS', 30))

# Detection pass
WEATHER_CHECK_LOOKAHEAD_HOURS = int(os.environ.get('WEATHER_CHECK_LOOKAHEAD_HOURS', 3))
WEATHER_MAX_CONCURRENT_FETCHES = int(os.environ.get('WEATHER_MAX_CONCURRENT_FETCHES', 5))

# Per-tier minima overrides, e.g. {"private_pilot": {"max_wind_kt": 18}}
WEATHER_MINIMA = {}

# Slot search
RESCHEDULE_HORIZON_DAYS = int(os.environ.get('RESCHEDULE_HORIZON_DAYS', 7))
RESCHEDULE_SLOT_STEP_MINUTES = 60
MAX_CANDIDATE_SLOTS = int(os.environ.get('MAX_CANDIDATE_SLOTS', 20))

# Reasoning service (OpenAI-compatible chat completions)
REASONING_API_URL = os.environ.get('REASONING_API_URL', 'https://api.openai.com/v1')
REASONING_API_KEY = os.environ.get('REASONING_API_KEY', '')
REASONING_MODEL = os.environ.get('REASONING_MODEL', 'gpt-4o-mini')
REASONING_API_TIMEOUT = float(os.environ.get('REASONING_API_TIMEOUT', 30))
REASONING_TEMPERATURE = 0.7
REASONING_MAX_TOKENS = 2000
PROPOSALS_PER_CONFLICT = 3
FALLBACK_PROPOSAL_SCORE = 50

# Staleness monitoring
STALE_CONFLICT_GRACE_MINUTES = int(os.environ.get('STALE_CONFLICT_GRACE_MINUTES', 15))
MAX_CONFLICT_REDRIVES = int(os.environ.get('MAX_CONFLICT_REDRIVES', 3))

# Email Configuration
EMAIL_BACKEND = 'django.core.mail.backends.smtp.EmailBackend'
EMAIL_HOST = os.environ.get('EMAIL_HOST', 'smtp.example.com')
EMAIL_PORT = int(os.environ.get('EMAIL_PORT', 587))
EMAIL_HOST_USER = os.environ.get('EMAIL_HOST_USER', '')
EMAIL_HOST_PASSWORD = os.environ.get('EMAIL_HOST_PASSWORD', '')
EMAIL_USE_TLS = True
DEFAULT_FROM_EMAIL = os.environ.get('DEFAULT_FROM_EMAIL', 'noreply@example.com')
APP_URL = os.environ.get('APP_URL', 'http://localhost:3000')

JWT_SETTINGS = {
    'ALGORITHM': os.environ.get('JWT_ALGORITHM', 'HS256'),
    'VERIFYING_KEY': os.environ.get('JWT_VERIFYING_KEY', SECRET_KEY),
    'ISSUER': os.environ.get('JWT_ISSUER', 'ftms-user-service'),
}

SERVICE_NAME = 'weather-service'
SERVICE_PORT = 8015

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'json': {'()': 'pythonjsonlogger.jsonlogger.JsonFormatter', 'format': '%(asctime)s %(levelname)s %(name)s %(message)s'},
        'standard': {'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s'},
    },
    'filters': {'request_id': {'()': 'shared.common.middleware.RequestIDLogFilter'}},
    'handlers': {'console': {'class': 'logging.StreamHandler', 'formatter': 'json', 'filters': ['request_id']}},
    'root': {'handlers': ['console'], 'level': 'INFO'},
}
