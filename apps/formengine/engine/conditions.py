# apps/formengine/engine/conditions.py
"""
Condition language: a closed subset of JSON-logic, parsed once into frozen nodes.

    {"===": [{"var": "loanTypeName"}, "debt-service-coverage-ratio"]}
    {"or": [{">=": [{"var": "numberOfUnits"}, 2]}, {"var": "isPortfolio"}]}

Parsing rejects unknown operators (ConfigError). Evaluation never raises:
missing variables and type mismatches make the expression "unknown", and an
unknown result is reported as not satisfied.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Set, Tuple, Union

from .errors import ConditionEvaluationError, ConfigError

log = logging.getLogger("formengine.conditions")

_MISSING = object()


@dataclass(frozen=True)
class Var:
    name: str
    default: Any = _MISSING


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Compare:
    op: str  # "==", "!=", ">", ">=", "<", "<="
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class In:
    needle: "Node"
    haystack: "Node"


@dataclass(frozen=True)
class And:
    operands: Tuple["Node", ...]


@dataclass(frozen=True)
class Or:
    operands: Tuple["Node", ...]


@dataclass(frozen=True)
class Not:
    operand: "Node"


Node = Union[Var, Literal, Compare, In, And, Or, Not]
_NODE_TYPES = (Var, Literal, Compare, In, And, Or, Not)

# JSON operator -> canonical comparison. "==" never coerces.
_COMPARISONS = {
    "===": "==",
    "==": "==",
    "!==": "!=",
    "!=": "!=",
    ">": ">",
    ">=": ">=",
    "<": "<",
    "<=": "<=",
}
OPERATORS = frozenset(list(_COMPARISONS) + ["in", "and", "or", "!", "var"])

_SCALARS = (str, int, float, bool, type(None))


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------
def parse_condition(raw: Any) -> Node:
    """Turn a JSON-logic expression into a node tree. Raises ConfigError."""
    if isinstance(raw, _NODE_TYPES):
        return raw
    if isinstance(raw, dict):
        if len(raw) != 1:
            raise ConfigError(f"Condition node must hold exactly one operator, got {sorted(map(str, raw))}")
        (op, args), = raw.items()
        if op == "var":
            return _parse_var(args)
        if op in _COMPARISONS:
            left, right = _operands(op, args, 2)
            return Compare(_COMPARISONS[op], parse_condition(left), parse_condition(right))
        if op == "in":
            needle, haystack = _operands(op, args, 2)
            return In(parse_condition(needle), parse_condition(haystack))
        if op in ("and", "or"):
            if not isinstance(args, list) or not args:
                raise ConfigError(f"'{op}' expects a non-empty list of expressions")
            operands = tuple(parse_condition(a) for a in args)
            return And(operands) if op == "and" else Or(operands)
        if op == "!":
            (operand,) = _operands(op, args if isinstance(args, list) else [args], 1)
            return Not(parse_condition(operand))
        raise ConfigError(f"Unknown condition operator '{op}'")
    if isinstance(raw, (list, tuple)):
        if not all(isinstance(v, _SCALARS) for v in raw):
            raise ConfigError(f"List literals may only hold scalars: {raw!r}")
        return Literal(tuple(raw))
    if isinstance(raw, _SCALARS):
        return Literal(raw)
    raise ConfigError(f"Unsupported condition operand: {raw!r}")


def _operands(op: str, args: Any, count: int) -> list:
    if not isinstance(args, list) or len(args) != count:
        raise ConfigError(f"'{op}' expects exactly {count} operand(s), got {args!r}")
    return args


def _parse_var(args: Any) -> Var:
    default = _MISSING
    if isinstance(args, list):
        if not args or len(args) > 2:
            raise ConfigError(f"'var' expects [name] or [name, default], got {args!r}")
        if len(args) == 2:
            default = args[1]
            if not isinstance(default, _SCALARS):
                raise ConfigError(f"'var' default must be a scalar, got {default!r}")
        args = args[0]
    if not isinstance(args, str) or not args.strip():
        raise ConfigError(f"'var' expects a field name, got {args!r}")
    return Var(args.strip(), default)


def to_json(node: Node) -> Any:
    """Serialize a node back to JSON-logic (strict operators)."""
    if isinstance(node, Var):
        return {"var": node.name if node.default is _MISSING else [node.name, node.default]}
    if isinstance(node, Literal):
        return list(node.value) if isinstance(node.value, tuple) else node.value
    if isinstance(node, Compare):
        op = {"==": "===", "!=": "!=="}.get(node.op, node.op)
        return {op: [to_json(node.left), to_json(node.right)]}
    if isinstance(node, In):
        return {"in": [to_json(node.needle), to_json(node.haystack)]}
    if isinstance(node, And):
        return {"and": [to_json(o) for o in node.operands]}
    if isinstance(node, Or):
        return {"or": [to_json(o) for o in node.operands]}
    if isinstance(node, Not):
        return {"!": [to_json(node.operand)]}
    raise TypeError(f"Not a condition node: {node!r}")


def referenced_variables(expression: Any) -> Set[str]:
    node = parse_condition(expression)
    found: Set[str] = set()
    _collect_vars(node, found)
    return found


def _collect_vars(node: Node, acc: Set[str]) -> None:
    if isinstance(node, Var):
        acc.add(node.name)
    elif isinstance(node, Compare):
        _collect_vars(node.left, acc)
        _collect_vars(node.right, acc)
    elif isinstance(node, In):
        _collect_vars(node.needle, acc)
        _collect_vars(node.haystack, acc)
    elif isinstance(node, (And, Or)):
        for operand in node.operands:
            _collect_vars(operand, acc)
    elif isinstance(node, Not):
        _collect_vars(node.operand, acc)


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------
def _kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "list"
    return type(value).__name__


def _strict_equal(a: Any, b: Any) -> bool:
    if _kind(a) != _kind(b):
        return False
    if _kind(a) == "list":
        return len(a) == len(b) and all(_strict_equal(x, y) for x, y in zip(a, b))
    return a == b


def _value(node: Node, context: Mapping[str, Any]) -> Any:
    if isinstance(node, Var):
        if node.name in context:
            return context[node.name]
        if node.default is not _MISSING:
            return node.default
        raise ConditionEvaluationError(f"missing variable '{node.name}'")
    if isinstance(node, Literal):
        return node.value
    return _eval(node, context)


def _eval(node: Node, context: Mapping[str, Any]) -> bool:
    if isinstance(node, (Var, Literal)):
        value = _value(node, context)
        if not isinstance(value, bool):
            raise ConditionEvaluationError(f"expected a boolean, got {_kind(value)}")
        return value

    if isinstance(node, Compare):
        left, right = _value(node.left, context), _value(node.right, context)
        if node.op == "==":
            return _strict_equal(left, right)
        if node.op == "!=":
            return not _strict_equal(left, right)
        kinds = (_kind(left), _kind(right))
        if kinds not in (("number", "number"), ("string", "string")):
            raise ConditionEvaluationError(f"cannot order {kinds[0]} and {kinds[1]}")
        if node.op == ">":
            return left > right
        if node.op == ">=":
            return left >= right
        if node.op == "<":
            return left < right
        return left <= right

    if isinstance(node, In):
        needle, haystack = _value(node.needle, context), _value(node.haystack, context)
        if _kind(haystack) == "list":
            return any(_strict_equal(needle, item) for item in haystack)
        if _kind(haystack) == "string" and _kind(needle) == "string":
            return needle in haystack
        raise ConditionEvaluationError(f"cannot test {_kind(needle)} in {_kind(haystack)}")

    if isinstance(node, And):
        unknown: Optional[ConditionEvaluationError] = None
        for operand in node.operands:
            try:
                if not _eval(operand, context):
                    return False
            except ConditionEvaluationError as exc:
                unknown = unknown or exc
        if unknown:
            raise unknown
        return True

    if isinstance(node, Or):
        unknown = None
        for operand in node.operands:
            try:
                if _eval(operand, context):
                    return True
            except ConditionEvaluationError as exc:
                unknown = unknown or exc
        if unknown:
            raise unknown
        return False

    if isinstance(node, Not):
        return not _eval(node.operand, context)

    raise ConditionEvaluationError(f"not a condition node: {node!r}")


def evaluate(expression: Any, context: Optional[Mapping[str, Any]]) -> bool:
    """
    True only when the expression is satisfied. Never raises: malformed
    expressions, missing variables and type mismatches all give False.
    """
    try:
        node = parse_condition(expression)
        return _eval(node, context if context is not None else {})
    except (ConditionEvaluationError, ConfigError) as exc:
        log.debug("Condition not satisfied (%s): %r", exc, expression)
        return False
    except Exception:
        log.warning("Condition evaluation failed: %r", expression, exc_info=True)
        return False


def evaluate_all(conditions: Optional[Iterable[Any]], context: Optional[Mapping[str, Any]]) -> bool:
    """A condition list holds when every entry holds; an empty list always holds."""
    return all(evaluate(c, context) for c in (conditions or ()))
