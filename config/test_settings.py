"""
Settings used by the test suite.

SQLite in memory unless POSTGRES_DB is exported; the threaded checkout race
tests only run against PostgreSQL row locks.
"""
import os

from .settings import *  # noqa: F401,F403

if not os.environ.get('POSTGRES_DB'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': ':memory:',
        }
    }

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = False
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

RATE_LIMIT_ENABLED = False

LOGGING['root']['level'] = 'WARNING'  # noqa: F405
