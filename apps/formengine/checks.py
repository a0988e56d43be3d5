from __future__ import annotations

from django.conf import settings
from django.core.checks import Error, register

from apps.formengine.conf.loader import ConfigRegistry
from apps.formengine.engine.errors import ConfigError


@register()
def check_form_definitions(app_configs, **kwargs):
    errors = []
    directory = getattr(settings, "FORMENGINE_CONFIG_DIR", "")
    if not directory:
        errors.append(Error(
            "FORMENGINE: FORMENGINE_CONFIG_DIR is not set",
            hint="Point it at the directory holding the form definitions (YAML/JSON).",
            id="formengine.E001",
        ))
        return errors
    try:
        registry = ConfigRegistry.from_directory(directory)
    except ConfigError as e:
        errors.append(Error(
            f"FORMENGINE: form definitions do not load: {e}",
            hint="Run 'python manage.py formengine_lint' for details.",
            id="formengine.E002",
        ))
        return errors
    if not len(registry):
        errors.append(Error(
            f"FORMENGINE: no form definition found in {directory}",
            hint="Add at least one .yaml, .yml or .json definition.",
            id="formengine.E003",
        ))
    return errors
