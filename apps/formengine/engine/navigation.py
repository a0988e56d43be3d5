# apps/formengine/engine/navigation.py
"""
Navigator: a pointer over the *visible* step sequence.

Every value change re-runs normalize -> resolve -> reconcile before returning,
so `visible`, `position` and `current_step` are always consistent with `values`.
Validation failures are reported in `state.errors`, never raised.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Type

from ..conf.schema import FormConfig, Step
from .arrays import NormalizedSteps, normalize
from .validation import RuleForm, ValidationResult, build_schema, validate
from .visibility import VisibleSet, resolve

log = logging.getLogger("formengine.navigation")


@dataclass
class FormState:
    values: Dict[str, Any] = field(default_factory=dict)
    step_id: Optional[str] = None
    position: int = -1
    errors: Dict[str, List[str]] = field(default_factory=dict)
    ready_to_submit: bool = False


class Navigator:
    def __init__(self, config: FormConfig, values: Optional[Mapping[str, Any]] = None):
        self.config = config
        self.state = FormState(values=dict(values or {}))
        self.steps: NormalizedSteps = ()
        self.visible: VisibleSet = resolve(())
        self._recompute()

    # ---------- derived ----------
    @property
    def values(self) -> Dict[str, Any]:
        return self.state.values

    @property
    def errors(self) -> Dict[str, List[str]]:
        return self.state.errors

    @property
    def position(self) -> int:
        return self.state.position

    @property
    def total(self) -> int:
        return len(self.visible)

    @property
    def current_step(self) -> Optional[Step]:
        if self.state.position < 0:
            return None
        return self.visible.steps[self.state.position]

    @property
    def is_first(self) -> bool:
        return self.state.position == 0

    @property
    def is_last(self) -> bool:
        return self.state.position >= 0 and self.state.position == self.total - 1

    # ---------- recomputation ----------
    def _recompute(self) -> None:
        previous_order = [s.id for s in self.steps]
        self.steps = normalize(self.config, self.state.values)
        self.visible = resolve(self.steps, self.state.values)
        self._reconcile(previous_order)

    def _reconcile(self, previous_order: List[str]) -> None:
        state = self.state
        if not self.visible.steps:
            state.step_id, state.position = None, -1
            return
        if state.step_id is None:
            state.step_id, state.position = self.visible.steps[0].id, 0
            return
        idx = self.visible.index_of(state.step_id)
        if idx >= 0:
            state.position = idx
            return

        # active step disappeared: nearest later visible step, else the last one
        order = [s.id for s in self.steps]
        if state.step_id not in order:
            order = previous_order
        later = order[order.index(state.step_id) + 1:] if state.step_id in order else []
        target = next((sid for sid in later if self.visible.is_step_visible(sid)), None)
        if target is None:
            target = self.visible.steps[-1].id
        log.info("Step %s is no longer visible, moving to %s", state.step_id, target)
        state.step_id, state.position = target, self.visible.index_of(target)

    def _move_to(self, position: int) -> None:
        self.state.position = position
        self.state.step_id = self.visible.steps[position].id
        self.state.errors = {}
        self.state.ready_to_submit = False

    # ---------- values ----------
    def set_value(self, name: str, value: Any) -> None:
        self.update({name: value})

    def update(self, values: Mapping[str, Any]) -> None:
        for name, value in values.items():
            self.state.values[name] = value
            self.state.errors.pop(name, None)
        self.state.ready_to_submit = False
        self._recompute()

    # ---------- validation ----------
    def step_schema(self, step_id: Optional[str] = None) -> Type[RuleForm]:
        step_id = step_id or self.state.step_id
        fields = self.visible.fields_by_step.get(step_id, ())
        return build_schema(fields, self.config.validation.global_rules)

    def validate_current(self) -> ValidationResult:
        if self.current_step is None:
            return ValidationResult(ok=True)
        return validate(self.step_schema(), self.state.values)

    def _gate(self) -> bool:
        result = self.validate_current()
        if not result.ok:
            self.state.errors = dict(result.errors)
            log.debug("Step %s blocked by %s", self.state.step_id, sorted(result.errors))
        return result.ok

    # ---------- transitions ----------
    def next(self) -> bool:
        """Validate the active step; advance, or mark ready_to_submit at the last step."""
        if self.current_step is None or not self._gate():
            return False
        if self.is_last:
            self.state.errors = {}
            self.state.ready_to_submit = True
            return True
        self._move_to(self.state.position + 1)
        return True

    def previous(self) -> bool:
        if self.state.position <= 0:
            return False
        self._move_to(self.state.position - 1)
        return True

    def go_to(self, target: int) -> bool:
        """Backward (or stay) always; forward only if the active step validates."""
        if not 0 <= target < self.total:
            return False
        if target > self.state.position and not self._gate():
            return False
        self._move_to(target)
        return True

    def submit(self) -> ValidationResult:
        """Validate every visible field of every visible step, plus global rules."""
        schema = build_schema(self.visible.fields(), self.config.validation.global_rules)
        result = validate(schema, self.state.values)
        self.state.errors = dict(result.errors)
        self.state.ready_to_submit = result.ok
        return result

    # ---------- output ----------
    def describe(self) -> Dict[str, Any]:
        return {
            "position": self.state.position,
            "stepId": self.state.step_id,
            "total": self.total,
            "readyToSubmit": self.state.ready_to_submit,
            "errors": self.state.errors,
            "steps": describe_steps(self.visible),
        }


def describe_steps(visible: VisibleSet) -> List[Dict[str, Any]]:
    """Visible steps with their display fields, as the client renders them."""
    out = []
    for step in visible.steps:
        data = step.model_dump(by_alias=True, mode="json", exclude_none=True, exclude={"fields"})
        data["fields"] = [
            f.model_dump(by_alias=True, mode="json", exclude_none=True)
            for f in visible.display_fields_by_step[step.id]
        ]
        out.append(data)
    return out
