# apps/formengine/conf/schema.py
"""
Pydantic models of a form definition (camelCase on the wire, snake_case in Python).

Everything the engine needs to trust is checked here, once, at load time:
condition operators, rule names, transformation paths, template wiring.
"""
from __future__ import annotations

import re
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, PlainSerializer, field_validator, model_validator
from pydantic.alias_generators import to_camel
from typing_extensions import Annotated

from ..engine.conditions import parse_condition, to_json
from ..engine.errors import ConfigError
from ..engine.transform import EACH, parse_path

FieldType = Literal[
    "text", "email", "phone", "password", "dropdown", "options", "options_cards",
    "radio", "checkbox", "date", "currency", "label", "hidden",
]
NON_INPUT_TYPES = frozenset({"label", "hidden"})

RuleName = Literal[
    "required", "minLength", "maxLength", "min", "max", "email", "phoneUS", "zipCode",
    "ssnFormat", "minAge", "maxAge", "minCreditScore", "pattern", "oneOf",
]
_RULES_WITH_VALUE = {"minLength", "maxLength", "min", "max", "minAge", "maxAge", "minCreditScore", "pattern", "oneOf"}
_INTEGER_RULES = {"minLength", "maxLength", "minAge", "maxAge"}
_NUMBER_RULES = {"min", "max", "minCreditScore"}

FlowType = Literal["linear", "wizard", "selection", "single"]


def _condition(raw: Any):
    try:
        return parse_condition(raw)
    except ConfigError as e:
        raise ValueError(str(e)) from e


ConditionExpr = Annotated[Any, BeforeValidator(_condition), PlainSerializer(to_json)]


def _check_path(path: str, name: str) -> None:
    try:
        segments = parse_path(path)
    except ConfigError as e:
        raise ValueError(str(e)) from e
    if (EACH in segments) != (name.count("[]") == 1):
        raise ValueError(f"Array pattern mismatch between '{path}' and '{name}'")


class _Model(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="allow",
    )


class Rule(_Model):
    rule: RuleName
    value: Any = None
    message: Optional[str] = None

    @model_validator(mode="after")
    def _value_present(self) -> "Rule":
        if self.rule in _RULES_WITH_VALUE and self.value is None:
            raise ValueError(f"Rule '{self.rule}' requires a value")
        # bool is an int subclass; true/false is never a threshold
        if self.rule in _INTEGER_RULES and (isinstance(self.value, bool) or not isinstance(self.value, int)):
            raise ValueError(f"Rule '{self.rule}' expects an integer value, got {self.value!r}")
        if self.rule in _NUMBER_RULES and (isinstance(self.value, bool) or not isinstance(self.value, (int, float))):
            raise ValueError(f"Rule '{self.rule}' expects a numeric value, got {self.value!r}")
        if self.rule == "pattern":
            try:
                re.compile(str(self.value))
            except re.error as e:
                raise ValueError(f"Rule 'pattern' has an invalid regex: {e}") from e
        if self.rule == "oneOf" and not isinstance(self.value, (list, tuple)):
            raise ValueError("Rule 'oneOf' expects a list of values")
        return self


class Option(_Model):
    value: Union[bool, int, float, str]
    label: str


class FormField(_Model):
    id: str
    name: str = ""
    type: FieldType = "text"
    label: Optional[str] = None
    text: Optional[str] = None
    required: bool = False
    validation: Tuple[Rule, ...] = ()
    grid: Dict[str, int] = {}
    options: Tuple[Option, ...] = ()
    conditions: Tuple[ConditionExpr, ...] = ()
    array_controller: Optional[str] = None
    # bool marker on a template blueprint, integer index on a generated instance
    array_index: Union[bool, int, None] = None
    array_template: Optional[str] = None
    base_id: Optional[str] = None
    prefill_from: Optional[str] = None
    default_value: Any = None
    placeholder: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _defaults(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            if not data.get("name"):
                data["name"] = data.get("id")
            kind = data.get("type")
            if isinstance(kind, str):
                data["type"] = kind.replace("-", "_")
        return data

    @property
    def is_required(self) -> bool:
        return self.required or any(r.rule == "required" for r in self.validation)

    @property
    def is_input(self) -> bool:
        return self.type not in NON_INPUT_TYPES


class Step(_Model):
    id: str
    name: str = ""
    description: str = ""
    order: Union[int, float] = 0
    required: bool = False
    conditions: Tuple[ConditionExpr, ...] = ()
    fields: Tuple[FormField, ...] = ()
    # set on steps synthesized to host array instances
    array_template: Optional[str] = None

    @field_validator("fields")
    @classmethod
    def _unique_field_ids(cls, fields: Tuple[FormField, ...]) -> Tuple[FormField, ...]:
        seen = set()
        for f in fields:
            if f.id in seen:
                raise ValueError(f"Duplicate field id '{f.id}'")
            seen.add(f.id)
        return fields


class ArrayTemplate(_Model):
    name: str
    min_count: int = 1
    max_count: int = 99
    default_count: int = 1
    count_field: str
    field_template: Tuple[FormField, ...]

    @model_validator(mode="after")
    def _bounds(self) -> "ArrayTemplate":
        if self.min_count < 0:
            raise ValueError(f"Template '{self.name}': minCount must be >= 0")
        if self.min_count > self.max_count:
            raise ValueError(f"Template '{self.name}': minCount ({self.min_count}) > maxCount ({self.max_count})")
        ids = [f.id for f in self.field_template]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Template '{self.name}': duplicate blueprint ids")
        return self


class Metadata(_Model):
    id: str
    name: str
    version: str = "1.0.0"
    description: str = ""


class FlowConfig(_Model):
    type: FlowType = "linear"


class GlobalRule(_Model):
    type: Optional[str] = None
    field: Optional[str] = None
    fields: Tuple[str, ...] = ()
    rule: str
    value: Any = None
    message: Optional[str] = None

    @model_validator(mode="after")
    def _shape(self) -> "GlobalRule":
        if self.field:
            self.as_rule()
        elif self.fields:
            if self.rule != "unique":
                raise ValueError(f"Cross-field global rule '{self.rule}' is not supported (only 'unique')")
        else:
            raise ValueError("A global rule needs 'field' or 'fields'")
        return self

    def as_rule(self) -> Rule:
        return Rule(rule=self.rule, value=self.value, message=self.message)


class ValidationConfig(_Model):
    global_rules: Tuple[GlobalRule, ...] = ()

    def rules_for(self, field_name: str) -> List[Rule]:
        return [g.as_rule() for g in self.global_rules if g.field == field_name]

    @property
    def unique_groups(self) -> List[GlobalRule]:
        return [g for g in self.global_rules if g.fields]


class Transformations(_Model):
    inbound: Dict[str, str] = {}   # external path -> field name
    outbound: Dict[str, str] = {}  # field name -> external path

    @field_validator("inbound")
    @classmethod
    def _inbound_paths(cls, mapping: Dict[str, str]) -> Dict[str, str]:
        for path, name in mapping.items():
            _check_path(path, name)
        return mapping

    @field_validator("outbound")
    @classmethod
    def _outbound_paths(cls, mapping: Dict[str, str]) -> Dict[str, str]:
        for name, path in mapping.items():
            _check_path(path, name)
        return mapping

    def outbound_map(self) -> Dict[str, str]:
        if self.outbound:
            return dict(self.outbound)
        return {name: path for path, name in self.inbound.items()}


class FormConfig(_Model):
    metadata: Metadata
    steps: Tuple[Step, ...]
    array_templates: Dict[str, ArrayTemplate] = {}
    flow_config: FlowConfig = FlowConfig()
    validation: ValidationConfig = ValidationConfig()
    transformations: Transformations = Transformations()

    @model_validator(mode="before")
    @classmethod
    def _template_names(cls, data: Any) -> Any:
        if isinstance(data, dict):
            templates = data.get("arrayTemplates", data.get("array_templates"))
            if isinstance(templates, dict):
                data = dict(data)
                named = {}
                for key, tpl in templates.items():
                    if isinstance(tpl, dict):
                        tpl = {**tpl, "name": key}
                    named[key] = tpl
                data["arrayTemplates" if "arrayTemplates" in data else "array_templates"] = named
        return data

    @model_validator(mode="after")
    def _wiring(self) -> "FormConfig":
        step_ids = [s.id for s in self.steps]
        for name in self.array_templates:
            step_ids.append(f"{name}-details")
        dupes = sorted({s for s in step_ids if step_ids.count(s) > 1})
        if dupes:
            raise ValueError(f"Duplicate step id(s): {dupes}")

        controlled = set()
        for step in self.steps:
            for f in step.fields:
                if f.array_controller:
                    if f.array_controller not in self.array_templates:
                        raise ValueError(
                            f"Field '{f.id}' controls unknown array template '{f.array_controller}'"
                        )
                    controlled.add(f.array_controller)
        orphans = sorted(set(self.array_templates) - controlled)
        if orphans:
            raise ValueError(f"Array template(s) without a controller field: {orphans}")
        return self

    @property
    def id(self) -> str:
        return self.metadata.id

    def sorted_steps(self) -> Tuple[Step, ...]:
        return tuple(sorted(self.steps, key=lambda s: s.order))

    def field_names(self) -> set:
        names = {f.name for s in self.steps for f in s.fields}
        for tpl in self.array_templates.values():
            names.add(tpl.count_field)
        return names

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)
