# apps/formengine/engine/errors.py
from __future__ import annotations

from django.core.exceptions import ImproperlyConfigured


class ConfigError(ImproperlyConfigured):
    """Fatal: the form definition is missing or malformed. The session cannot start."""


class FormNotFound(ConfigError):
    def __init__(self, form_id: str):
        super().__init__(f"Form configuration not found: {form_id}")
        self.form_id = form_id


class ConditionEvaluationError(Exception):
    """Raised inside the evaluator only; evaluate() turns it into False."""


class TransformationPathError(Exception):
    """An external path could not be resolved; the mapped value is treated as absent."""


class ArrayTemplateBoundsError(ValueError):
    """Instance count outside [minCount, maxCount]; the normalizer clamps it."""
