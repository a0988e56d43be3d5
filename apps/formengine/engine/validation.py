# apps/formengine/engine/validation.py
"""
Schema generation: visible fields -> a Django Form class whose fields carry
the declared rules as validators.

    schema = build_schema(visible.fields(), config.validation.global_rules)
    result = validate(schema, values)   # ValidationResult(ok, data, errors, codes)

Only fields handed to build_schema exist in the schema; hidden fields never do.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Type

from django import forms
from django.core.exceptions import ValidationError
from django.utils import timezone
from django.utils.dateparse import parse_date

from ..conf.schema import FormField, GlobalRule, Rule

log = logging.getLogger("formengine.validation")

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_US_RE = re.compile(r"^(\+1|1)?[-.\s]?\(?[0-9]{3}\)?[-.\s]?[0-9]{3}[-.\s]?[0-9]{4}$")
ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")
SSN_RE = re.compile(r"^\d{3}-\d{2}-\d{4}$")
_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")

# worst -> best; value is the lower bound of the band
CREDIT_SCORE_BANDS: Tuple[Tuple[str, int], ...] = (
    ("<660", 300),
    ("660-679", 660),
    ("680-699", 680),
    ("700-719", 700),
    ("720-739", 720),
    ("740-759", 740),
    ("760+", 760),
    ("760-779", 760),
    ("780+", 780),
)
_BAND_VALUES = dict(CREDIT_SCORE_BANDS)


# ------------------------------------------------------------
# Value helpers
# ------------------------------------------------------------
def is_empty(value: Any, *, for_required: bool = False) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return not value
    if for_required and value is False:
        return True
    return False


def parse_number(value: Any) -> Optional[float]:
    """60000, 60000.5, "60,000", "$60,000.50" -> float; bools and junk -> None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, str):
        cleaned = re.sub(r"[\s,$]", "", value)
        if _NUMBER_RE.match(cleaned):
            return float(cleaned)
    return None


def parse_birth_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    raw = value.strip()
    try:
        parsed = parse_date(raw)
    except ValueError:
        return None
    if parsed:
        return parsed
    try:
        return datetime.strptime(raw, "%m/%d/%Y").date()
    except ValueError:
        return None


def age_in_years(born: date, today: Optional[date] = None) -> int:
    today = today or timezone.localdate()
    return today.year - born.year - ((today.month, today.day) < (born.month, born.day))


def credit_score_value(value: Any) -> Optional[int]:
    """Band label -> lower bound. Unknown labels -> None (treated as below any minimum)."""
    if isinstance(value, str):
        return _BAND_VALUES.get(value.strip())
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _same(a: Any, b: Any) -> bool:
    return isinstance(a, bool) == isinstance(b, bool) and a == b


# ------------------------------------------------------------
# Rule -> validator
# ------------------------------------------------------------
Validator = Callable[[Any], None]

DEFAULT_MESSAGES = {
    "required": "This field is required",
    "minLength": "Must be at least {value} characters",
    "maxLength": "Must be at most {value} characters",
    "min": "Must be at least {value}",
    "max": "Must be at most {value}",
    "email": "Enter a valid email address",
    "phoneUS": "Enter a valid US phone number",
    "zipCode": "Enter a valid ZIP code",
    "ssnFormat": "SSN must be in the format XXX-XX-XXXX",
    "minAge": "Must be at least {value} years old",
    "maxAge": "Must be at most {value} years old",
    "minCreditScore": "Credit score does not meet the minimum of {value}",
    "pattern": "Invalid format",
    "oneOf": "Select a valid option",
    "unique": "Values must be unique",
}


def message_for(rule: Rule) -> str:
    if rule.message:
        return rule.message
    return DEFAULT_MESSAGES[rule.rule].format(value=rule.value)


def _length(value: Any) -> int:
    return len(value) if isinstance(value, (str, list, tuple)) else len(str(value))


def _regex_check(regex: "re.Pattern") -> Callable[[Any, Any], bool]:
    return lambda value, _: isinstance(value, str) and bool(regex.match(value.strip()))


def _min_age(value: Any, threshold: Any) -> bool:
    born = parse_birth_date(value)
    return born is not None and age_in_years(born) >= int(threshold)


def _max_age(value: Any, threshold: Any) -> bool:
    born = parse_birth_date(value)
    return born is not None and age_in_years(born) <= int(threshold)


def _min_credit(value: Any, threshold: Any) -> bool:
    score = credit_score_value(value)
    minimum = parse_number(threshold)
    return score is not None and minimum is not None and score >= minimum


def _bound(value: Any, limit: Any, lower: bool) -> bool:
    number, bound = parse_number(value), parse_number(limit)
    if number is None or bound is None:
        return False
    return number >= bound if lower else number <= bound


# rule name -> predicate(value, rule.value); "required" is handled by RuleField.validate
RULE_CHECKS: Dict[str, Callable[[Any, Any], bool]] = {
    "minLength": lambda value, n: _length(value) >= int(n),
    "maxLength": lambda value, n: _length(value) <= int(n),
    "min": lambda value, n: _bound(value, n, lower=True),
    "max": lambda value, n: _bound(value, n, lower=False),
    "email": _regex_check(EMAIL_RE),
    "phoneUS": _regex_check(PHONE_US_RE),
    "zipCode": _regex_check(ZIP_RE),
    "ssnFormat": _regex_check(SSN_RE),
    "minAge": _min_age,
    "maxAge": _max_age,
    "minCreditScore": _min_credit,
    "pattern": lambda value, rx: re.fullmatch(str(rx), str(value)) is not None,
    "oneOf": lambda value, allowed: any(_same(value, a) for a in allowed),
}


def make_validator(rule: Rule) -> Validator:
    check = RULE_CHECKS[rule.rule]
    message = message_for(rule)

    def _validator(value):
        if not check(value, rule.value):
            raise ValidationError(message, code=rule.rule)
    _validator.rule = rule.rule
    return _validator


# ------------------------------------------------------------
# Form field
# ------------------------------------------------------------
class RuleField(forms.Field):
    """
    A form field driven by declared rules. Empty values only ever see the
    required check; other rules are Django validators run on non-empty input.
    """

    def __init__(self, spec: FormField, rules: Sequence[Rule] = (), **kwargs):
        kwargs.setdefault("label", spec.label)
        super().__init__(required=False, **kwargs)
        self.spec = spec
        self.rules = tuple(rules)
        self.is_required = spec.required or any(r.rule == "required" for r in self.rules)
        self.required_message = next(
            (message_for(r) for r in self.rules if r.rule == "required"),
            DEFAULT_MESSAGES["required"],
        )
        self.validators.extend(make_validator(r) for r in self.rules if r.rule != "required")

    def to_python(self, value):
        if isinstance(value, str):
            return value.strip()
        return value

    def validate(self, value):
        if self.is_required and is_empty(value, for_required=True):
            raise ValidationError(self.required_message, code="required")

    def run_validators(self, value):
        if is_empty(value):
            return
        super().run_validators(value)


class RuleForm(forms.Form):
    unique_groups: Tuple[GlobalRule, ...] = ()

    def clean(self):
        cleaned = super().clean()
        for group in self.unique_groups:
            seen: Dict[str, List[str]] = {}
            for name, fld in self.fields.items():
                if fld.spec.name not in group.fields and fld.spec.base_id not in group.fields:
                    continue
                value = cleaned.get(name)
                if is_empty(value):
                    continue
                seen.setdefault(str(value).strip().lower(), []).append(name)
            message = group.message or DEFAULT_MESSAGES["unique"]
            for names in seen.values():
                if len(names) > 1:
                    for name in names:
                        self.add_error(name, ValidationError(message, code="unique"))
        return cleaned


def build_schema(fields: Iterable[FormField], global_rules: Sequence[GlobalRule] = ()) -> Type[RuleForm]:
    """
    One RuleField per input field (labels and hidden fields are skipped).
    Field-targeted global rules are appended after the field's own rules.
    """
    attrs: Dict[str, Any] = {}
    for spec in fields:
        if not spec.is_input or spec.name in attrs:
            continue
        rules = list(spec.validation)
        rules.extend(
            g.as_rule() for g in global_rules
            if g.field and g.field in (spec.name, spec.base_id)
        )
        attrs[spec.name] = RuleField(spec, rules)
    attrs["unique_groups"] = tuple(g for g in global_rules if g.fields)
    return type("GeneratedSchema", (RuleForm,), attrs)


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    data: Dict[str, Any] = field(default_factory=dict)
    errors: Dict[str, List[str]] = field(default_factory=dict)
    codes: Dict[str, List[str]] = field(default_factory=dict)


def validate(schema: Type[RuleForm], values: Optional[Mapping[str, Any]]) -> ValidationResult:
    """Run the schema. Never raises; violations come back as ValidationResult.errors."""
    values = dict(values or {})
    form = schema(data=values)
    if form.is_valid():
        data = {name: form.cleaned_data[name] for name in form.fields if name in values}
        return ValidationResult(ok=True, data=data)

    errors: Dict[str, List[str]] = {}
    codes: Dict[str, List[str]] = {}
    for name, exc_list in form.errors.as_data().items():
        for exc in exc_list:
            for message in exc.messages:
                errors.setdefault(name, []).append(message)
                codes.setdefault(name, []).append(exc.code or "invalid")
    log.debug("Validation failed on %d field(s): %s", len(errors), sorted(errors))
    return ValidationResult(ok=False, errors=errors, codes=codes)


def validate_fields(fields: Iterable[FormField], values: Optional[Mapping[str, Any]], global_rules: Sequence[GlobalRule] = ()) -> ValidationResult:
    return validate(build_schema(fields, global_rules), values)
