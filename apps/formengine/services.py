from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from django.apps import apps as django_apps
from django.conf import settings

from apps.formengine.conf.loader import ConfigRegistry
from apps.formengine.conf.schema import FormConfig
from apps.formengine.engine.navigation import describe_steps
from apps.formengine.engine.session import FormSession, apply_prefill
from apps.formengine.engine.transform import inbound, outbound
from apps.formengine.engine.validation import ValidationResult, build_schema, validate
from apps.formengine.engine.visibility import resolve_config

log = logging.getLogger("formengine.services")


@dataclass(frozen=True)
class SubmissionResult:
    ok: bool
    data: Dict[str, Any] = field(default_factory=dict)
    errors: Dict[str, List[str]] = field(default_factory=dict)
    payload: Dict[str, Any] = field(default_factory=dict)


class FormService:
    """
    Config lookup + submission boundary. Raises FormNotFound for unknown ids;
    validation problems are returned, never raised.
    """

    def __init__(self, registry: ConfigRegistry):
        self.registry = registry

    def list_forms(self) -> List[Dict[str, Any]]:
        return self.registry.summaries()

    def get_config(self, form_id: str) -> FormConfig:
        return self.registry.get(form_id)

    def start_session(self, form_id: str, external_payload: Optional[Mapping[str, Any]] = None) -> FormSession:
        return FormSession(self.get_config(form_id), external_payload)

    def map_inbound(self, form_id: str, external_payload: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        config = self.get_config(form_id)
        return apply_prefill(config, inbound(external_payload, config.transformations.inbound))

    def resolve(self, form_id: str, values: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        config = self.get_config(form_id)
        visible = resolve_config(config, values or {})
        return {"steps": describe_steps(visible), "total": len(visible)}

    def validate_step(self, form_id: str, position: int, values: Optional[Mapping[str, Any]]) -> ValidationResult:
        """Validate the visible fields of the step at `position` in the visible sequence."""
        config = self.get_config(form_id)
        values = values or {}
        visible = resolve_config(config, values)
        if not 0 <= position < len(visible):
            raise IndexError(f"No visible step at position {position}")
        step = visible.steps[position]
        schema = build_schema(visible.fields_by_step[step.id], config.validation.global_rules)
        return validate(schema, values)

    def submit(self, form_id: str, values: Optional[Mapping[str, Any]]) -> SubmissionResult:
        config = self.get_config(form_id)
        values = apply_prefill(config, values or {})
        visible = resolve_config(config, values)
        result = validate(build_schema(visible.fields(), config.validation.global_rules), values)
        if not result.ok:
            log.info("Submission of %s rejected: %s", form_id, sorted(result.errors))
            return SubmissionResult(ok=False, errors=result.errors)

        payload = outbound(result.data, config.transformations.outbound_map())
        log.info("Submission of %s accepted (%d fields)", form_id, len(result.data))
        return SubmissionResult(ok=True, data=result.data, payload=payload)


def get_registry() -> ConfigRegistry:
    """Registry built by FormEngineConfig.ready(), or built now if loading on ready is off."""
    app = django_apps.get_app_config("formengine")
    if app.registry is None:
        app.registry = ConfigRegistry.from_directory(settings.FORMENGINE_CONFIG_DIR)
    return app.registry


def get_service() -> FormService:
    return FormService(get_registry())
