# apps/formengine/engine/visibility.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from ..conf.schema import FormConfig, FormField, Step
from .arrays import NormalizedSteps, normalize
from .conditions import evaluate_all


@dataclass(frozen=True)
class VisibleSet:
    steps: Tuple[Step, ...]
    # validity-relevant: no hidden, no label
    fields_by_step: Dict[str, Tuple[FormField, ...]]
    # what the client renders: labels kept, hidden inputs dropped
    display_fields_by_step: Dict[str, Tuple[FormField, ...]]
    visible_names: FrozenSet[str] = frozenset()

    def __len__(self) -> int:
        return len(self.steps)

    def step_ids(self) -> List[str]:
        return [s.id for s in self.steps]

    def index_of(self, step_id: Optional[str]) -> int:
        for i, s in enumerate(self.steps):
            if s.id == step_id:
                return i
        return -1

    def fields(self) -> List[FormField]:
        return [f for s in self.steps for f in self.fields_by_step[s.id]]

    def is_step_visible(self, step_id: str) -> bool:
        return self.index_of(step_id) >= 0

    def is_field_visible(self, name: str) -> bool:
        return name in self.visible_names


# ---------- resolution ----------
def is_step_visible(step: Step, values: Mapping[str, Any]) -> bool:
    return evaluate_all(step.conditions, values)


def is_field_visible(field: FormField, values: Mapping[str, Any]) -> bool:
    return evaluate_all(field.conditions, values)


def resolve(steps: NormalizedSteps, values: Optional[Mapping[str, Any]] = None) -> VisibleSet:
    """
    Ordered visible subsequence of steps, and per step the visible fields.
    Fields are only looked at when their step is visible. Pure.
    """
    values = values or {}
    visible_steps: List[Step] = []
    by_step: Dict[str, Tuple[FormField, ...]] = {}
    display: Dict[str, Tuple[FormField, ...]] = {}
    names = set()
    for step in steps:
        if not is_step_visible(step, values):
            continue
        visible_steps.append(step)
        shown = [f for f in step.fields if is_field_visible(f, values)]
        names.update(f.name for f in shown)
        by_step[step.id] = tuple(f for f in shown if f.is_input)
        display[step.id] = tuple(f for f in shown if f.type != "hidden")
    return VisibleSet(
        steps=tuple(visible_steps),
        fields_by_step=by_step,
        display_fields_by_step=display,
        visible_names=frozenset(names),
    )


def resolve_config(config: FormConfig, values: Optional[Mapping[str, Any]] = None) -> VisibleSet:
    """normalize + resolve in one call."""
    return resolve(normalize(config, values), values)
