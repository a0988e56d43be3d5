# apps/formengine/engine/arrays.py
"""
Array expansion: turn each ArrayTemplate into concrete field instances.

    borrowers (countField=numberOfBorrowers=2)
      -> step "borrowers-details" right after the controlling step
         borrowers[0].firstName, borrowers[0].lastName,
         borrowers[1].firstName, borrowers[1].lastName

The config is never mutated; the same (config, values) always gives the same steps.
"""
from __future__ import annotations

import logging
import re
from typing import Any, List, Mapping, Optional, Tuple

from ..conf.schema import ArrayTemplate, FormConfig, FormField, Step
from .conditions import evaluate_all
from .errors import ArrayTemplateBoundsError

log = logging.getLogger("formengine.arrays")

NormalizedSteps = Tuple[Step, ...]

_INT_RE = re.compile(r"[+-]?\d+")


def parse_count(raw: Any) -> Optional[int]:
    """int, integral float or base-10 integer string; anything else is None."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw) if raw.is_integer() else None
    if isinstance(raw, str) and _INT_RE.fullmatch(raw.strip()):
        return int(raw.strip())
    return None


def _check_bounds(template: ArrayTemplate, count: int) -> int:
    if not template.min_count <= count <= template.max_count:
        raise ArrayTemplateBoundsError(
            f"{template.name}: count {count} outside [{template.min_count}, {template.max_count}]"
        )
    return count


def default_count(template: ArrayTemplate) -> int:
    return min(max(template.default_count, template.min_count), template.max_count)


def instance_count(template: ArrayTemplate, values: Mapping[str, Any], controller_visible: bool = True) -> int:
    if controller_visible:
        count = parse_count(values.get(template.count_field))
        if count is not None:
            try:
                return _check_bounds(template, count)
            except ArrayTemplateBoundsError as exc:
                log.info("Clamping array count: %s", exc)
    return default_count(template)


def instance_id(template_name: str, index: int, base_id: str) -> str:
    return f"{template_name}[{index}].{base_id}"


def expand_template(template: ArrayTemplate, count: int) -> List[FormField]:
    fields: List[FormField] = []
    for index in range(count):
        for blueprint in template.field_template:
            iid = instance_id(template.name, index, blueprint.id)
            fields.append(
                blueprint.model_copy(
                    update={
                        "id": iid,
                        "name": iid,
                        "array_index": index,
                        "array_template": template.name,
                        "base_id": blueprint.id,
                    }
                )
            )
    return fields


def _controllers(steps: NormalizedSteps) -> dict:
    """template name -> (step, controlling field); first controller wins."""
    found = {}
    for step in steps:
        for f in step.fields:
            if f.array_controller and f.array_controller not in found:
                found[f.array_controller] = (step, f)
    return found


def details_step(template: ArrayTemplate, host: Step, fields: List[FormField]) -> Step:
    return Step(
        id=f"{template.name}-details",
        name=template.name[:1].upper() + template.name[1:],
        description="Provide details",
        order=host.order + 0.1,
        required=host.required,
        conditions=host.conditions,
        fields=tuple(fields),
        array_template=template.name,
    )


def normalize(config: FormConfig, values: Optional[Mapping[str, Any]] = None) -> NormalizedSteps:
    values = values or {}
    base = config.sorted_steps()
    if not config.array_templates:
        return base

    controllers = _controllers(base)
    extra = {}  # host step id -> synthesized steps, in template declaration order
    for name, template in config.array_templates.items():
        host, controller = controllers[name]
        visible = evaluate_all(host.conditions, values) and evaluate_all(controller.conditions, values)
        count = instance_count(template, values, controller_visible=visible)
        if count == 0:
            continue
        extra.setdefault(host.id, []).append(details_step(template, host, expand_template(template, count)))

    steps: List[Step] = []
    for step in base:
        steps.append(step)
        steps.extend(extra.get(step.id, ()))
    return tuple(steps)
