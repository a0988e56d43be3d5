import re
import sys

from django.conf import settings
from django.core.management.base import BaseCommand

from apps.formengine.conf.loader import ConfigRegistry
from apps.formengine.engine.conditions import referenced_variables

_INSTANCE_RE = re.compile(r"^(?P<template>[^\[\]]+)\[(?:\d*)\]\.(?P<base>.+)$")


def _known(config, name: str) -> bool:
    if name in config.field_names():
        return True
    m = _INSTANCE_RE.match(name)
    if not m or m.group("template") not in config.array_templates:
        return False
    blueprint_ids = {f.id for f in config.array_templates[m.group("template")].field_template}
    return m.group("base") in blueprint_ids


def lint_config(config):
    """Cross-checks pydantic cannot do alone: every name a definition mentions must exist."""
    errors = []
    all_fields = [(s.id, f) for s in config.steps for f in s.fields]
    for tpl in config.array_templates.values():
        all_fields.extend((f"{tpl.name}-details", f) for f in tpl.field_template)

    for step in config.steps:
        for cond in step.conditions:
            for var in sorted(referenced_variables(cond)):
                if not _known(config, var):
                    errors.append(f"step {step.id}: condition references unknown field '{var}'")
    for step_id, f in all_fields:
        for cond in f.conditions:
            for var in sorted(referenced_variables(cond)):
                if not _known(config, var):
                    errors.append(f"step {step_id}, field {f.id}: condition references unknown field '{var}'")
        if f.prefill_from and not _known(config, f.prefill_from):
            errors.append(f"step {step_id}, field {f.id}: prefillFrom '{f.prefill_from}' is unknown")

    blueprint_ids = {b.id for t in config.array_templates.values() for b in t.field_template}
    for rule in config.validation.global_rules:
        for name in ([rule.field] if rule.field else list(rule.fields)):
            # unique groups may name a blueprint id to cover every instance
            if not (_known(config, name) or name in blueprint_ids):
                errors.append(f"global rule '{rule.rule}' targets unknown field '{name}'")

    for path, name in config.transformations.inbound.items():
        if not _known(config, name):
            errors.append(f"inbound '{path}' maps to unknown field '{name}'")
    for name in config.transformations.outbound:
        if not _known(config, name):
            errors.append(f"outbound maps unknown field '{name}'")
    return errors


class Command(BaseCommand):
    help = "Validate every form definition (schema + cross-checks of referenced fields)."

    def add_arguments(self, parser):
        parser.add_argument("--dir", dest="directory", default=None,
                            help="Definition directory (default: settings.FORMENGINE_CONFIG_DIR)")

    def handle(self, *args, **options):
        directory = options.get("directory") or settings.FORMENGINE_CONFIG_DIR
        self.stdout.write("=== FormEngine Linter ===")

        try:
            registry = ConfigRegistry.from_directory(directory)
        except Exception as e:
            self.stderr.write(self.style.ERROR(f"Definitions do not load: {e}"))
            sys.exit(1)

        self.stdout.write(f"- Definitions found: {len(registry)}")

        errors = []
        for form_id in registry.ids():
            config = registry.get(form_id)
            self.stdout.write(self.style.NOTICE(f"Form {form_id} (flow={config.flow_config.type})"))
            errors.extend(f"{form_id}: {e}" for e in lint_config(config))

        if errors:
            self.stderr.write(self.style.ERROR("Errors found:"))
            for e in errors:
                self.stderr.write(f"  - {e}")
            sys.exit(1)
        else:
            self.stdout.write(self.style.SUCCESS("Definitions valid."))
