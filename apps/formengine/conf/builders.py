# apps/formengine/conf/builders.py
"""
Per-form variants built from a loaded base definition and an explicit options
object. Every variant goes back through validation, so a bad option (e.g.
max_borrowers below min_borrowers) is a ConfigError, not a broken form.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from ..engine.errors import ConfigError
from .loader import parse_config
from .schema import FormConfig, FormField, Step


# -------------------------
# Helpers
# -------------------------


def _revalidate(config: FormConfig) -> FormConfig:
    return parse_config(config.to_json(), source=f"builder:{config.id}")


def _with_metadata(config: FormConfig, form_id: Optional[str], version: Optional[str]) -> FormConfig:
    update: Dict[str, Any] = {}
    if form_id:
        update["id"] = form_id
    if version:
        update["version"] = version
    if not update:
        return config
    return config.model_copy(update={"metadata": config.metadata.model_copy(update=update)})


def _map_field(config: FormConfig, field_id: str, fn: Callable[[FormField], FormField]) -> FormConfig:
    found = False
    steps = []
    for step in config.steps:
        fields = []
        for f in step.fields:
            if f.id == field_id:
                found = True
                f = fn(f)
            fields.append(f)
        steps.append(step.model_copy(update={"fields": tuple(fields)}))
    if not found:
        raise ConfigError(f"{config.id}: no field '{field_id}' to customise")
    return config.model_copy(update={"steps": tuple(steps)})


def _restrict_options(allowed: Tuple[Any, ...]) -> Callable[[FormField], FormField]:
    def _apply(f: FormField) -> FormField:
        options = tuple(o for o in f.options if o.value in allowed)
        if not options:
            raise ConfigError(f"Field '{f.id}': none of {list(allowed)} is an option")
        return f.model_copy(update={"options": options})
    return _apply


def _drop_steps(config: FormConfig, step_ids: Tuple[str, ...]) -> FormConfig:
    steps: Tuple[Step, ...] = tuple(s for s in config.steps if s.id not in step_ids)
    return config.model_copy(update={"steps": steps})


# -------------------------
# Broker complete
# -------------------------


@dataclass(frozen=True)
class BrokerCompleteOptions:
    form_id: Optional[str] = None
    version: Optional[str] = None
    min_borrowers: Optional[int] = None
    max_borrowers: Optional[int] = None
    default_borrowers: Optional[int] = None
    loan_types: Optional[Tuple[str, ...]] = None
    credit_score_bands: Optional[Tuple[str, ...]] = None


def build_broker_complete_config(base: FormConfig, options: BrokerCompleteOptions = BrokerCompleteOptions()) -> FormConfig:
    if "borrowers" not in base.array_templates:
        raise ConfigError(f"{base.id}: not a broker definition (no 'borrowers' template)")
    config = _with_metadata(base, options.form_id, options.version)

    bounds = {
        "min_count": options.min_borrowers,
        "max_count": options.max_borrowers,
        "default_count": options.default_borrowers,
    }
    bounds = {k: v for k, v in bounds.items() if v is not None}
    if bounds:
        template = config.array_templates["borrowers"].model_copy(update=bounds)
        templates = {**config.array_templates, "borrowers": template}
        config = config.model_copy(update={"array_templates": templates})
        if options.max_borrowers is not None:
            limit = options.max_borrowers
            config = _map_field(
                config,
                template.count_field,
                lambda f: f.model_copy(update={
                    "options": tuple(o for o in f.options if not isinstance(o.value, int) or o.value <= limit)
                }),
            )

    if options.loan_types is not None:
        config = _map_field(config, "loanTypeName", _restrict_options(options.loan_types))
    if options.credit_score_bands is not None:
        config = _map_field(config, "estimatedCreditScore", _restrict_options(options.credit_score_bands))
    return _revalidate(config)


# -------------------------
# Simplified application
# -------------------------


@dataclass(frozen=True)
class SimplifiedApplicationOptions:
    form_id: Optional[str] = None
    version: Optional[str] = None
    allow_joint: bool = True
    unique_contact: bool = True


def build_simplified_application_config(
    base: FormConfig, options: SimplifiedApplicationOptions = SimplifiedApplicationOptions()
) -> FormConfig:
    config = _with_metadata(base, options.form_id, options.version)
    if not options.allow_joint:
        config = _map_field(config, "application_type", _restrict_options(("individual",)))
        config = _drop_steps(config, ("joint-property-info",))
    if not options.unique_contact:
        rules = tuple(g for g in config.validation.global_rules if g.rule != "unique")
        config = config.model_copy(
            update={"validation": config.validation.model_copy(update={"global_rules": rules})}
        )
    return _revalidate(config)
