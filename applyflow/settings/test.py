# applyflow/settings/test.py
from .dev import *  # noqa: F401,F403

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# Keep test output readable; recovered errors log at DEBUG/INFO.
LOGGING["root"]["level"] = "WARNING"  # noqa: F405
for _name in list(LOGGING["loggers"]):  # noqa: F405
    if _name.startswith("formengine."):
        LOGGING["loggers"][_name]["level"] = "WARNING"  # noqa: F405
