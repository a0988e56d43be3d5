# applyflow/settings/dev.py
# export DJANGO_SETTINGS_MODULE=applyflow.settings.dev

from .base import *  # noqa: F401,F403

DEBUG = True

ALLOWED_HOSTS = [
    "127.0.0.1",
    "localhost",
    "testserver",
]

# Dev: no forced SSL redirect
SECURE_SSL_REDIRECT = False

LOGGING["loggers"].update({  # noqa: F405
    "formengine.conditions": {"handlers": ["console"], "level": "DEBUG", "propagate": False},
    "formengine.arrays": {"handlers": ["console"], "level": "DEBUG", "propagate": False},
})
