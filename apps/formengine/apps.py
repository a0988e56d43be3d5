from django.apps import AppConfig
from django.conf import settings
import logging

log = logging.getLogger("formengine.conf")


class FormEngineConfig(AppConfig):
    name = "apps.formengine"
    label = "formengine"
    verbose_name = "Form Engine"

    # ConfigRegistry, set in ready() or lazily by services.get_registry()
    registry = None

    def ready(self):
        # Register system checks
        from . import checks  # noqa: F401
        from .conf.loader import ConfigRegistry

        if getattr(settings, "FORMENGINE_LOAD_ON_READY", True):
            self.registry = ConfigRegistry.from_directory(settings.FORMENGINE_CONFIG_DIR)
        log.info("FormEngine loaded")
