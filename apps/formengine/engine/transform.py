# apps/formengine/engine/transform.py
"""
External nested payload <-> flat field values.

Paths:   applicant.personal.firstName   loans[0].amount   data['Loan Type']
Pattern: borrowers[].personal.firstName  <->  borrowers[].firstName
         ("[]" expands to every list element inbound, every instance outbound)
"""
from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .errors import ConfigError, TransformationPathError

log = logging.getLogger("formengine.transform")


class _Each:
    def __repr__(self) -> str:
        return "[]"


EACH = _Each()
Segment = Union[str, int, _Each]

_TOKEN = re.compile(
    r"""
      (?P<name>[^.\[\]'"]+)
    | \[(?P<index>\d+)\]
    | \['(?P<sq>[^']*)'\]
    | \["(?P<dq>[^"]*)"\]
    | (?P<each>\[\])
    """,
    re.VERBOSE,
)


@lru_cache(maxsize=512)
def parse_path(path: str) -> Tuple[Segment, ...]:
    """Split a dotted/bracketed path into segments. Raises ConfigError."""
    if not isinstance(path, str) or not path.strip():
        raise ConfigError(f"Empty transformation path: {path!r}")
    segments: List[Segment] = []
    pos, after_dot = 0, False
    while pos < len(path):
        if path[pos] == ".":
            if not segments or after_dot:
                raise ConfigError(f"Malformed transformation path '{path}' at {pos}")
            after_dot = True
            pos += 1
            continue
        m = _TOKEN.match(path, pos)
        if not m:
            raise ConfigError(f"Malformed transformation path '{path}' at {pos}")
        if m.group("name") is not None:
            if segments and not after_dot:
                raise ConfigError(f"Malformed transformation path '{path}': missing '.' at {pos}")
            segments.append(m.group("name"))
        elif after_dot:
            raise ConfigError(f"Malformed transformation path '{path}': bracket after '.' at {pos}")
        elif m.group("index") is not None:
            segments.append(int(m.group("index")))
        elif m.group("sq") is not None:
            segments.append(m.group("sq"))
        elif m.group("dq") is not None:
            segments.append(m.group("dq"))
        else:
            segments.append(EACH)
        after_dot = False
        pos = m.end()
    if after_dot:
        raise ConfigError(f"Malformed transformation path '{path}': trailing '.'")
    if not isinstance(segments[0], str):
        raise ConfigError(f"Transformation path '{path}' must start with a key")
    if sum(1 for s in segments if s is EACH) > 1:
        raise ConfigError(f"Transformation path '{path}' may hold at most one '[]'")
    return tuple(segments)


def is_pattern(path: str) -> bool:
    return any(s is EACH for s in parse_path(path))


# ---------------------------------------------------------------------------
# Reading / writing one path
# ---------------------------------------------------------------------------
def get_path(payload: Any, segments: Tuple[Segment, ...]) -> Any:
    node = payload
    for seg in segments:
        if isinstance(seg, int):
            if not isinstance(node, list) or seg >= len(node):
                raise TransformationPathError(f"no index {seg}")
            node = node[seg]
        elif isinstance(seg, str):
            if not isinstance(node, dict) or seg not in node:
                raise TransformationPathError(f"no key {seg!r}")
            node = node[seg]
        else:
            raise TransformationPathError("unexpanded '[]' segment")
    return node


def _put(node: Union[dict, list], seg: Segment, value: Any) -> None:
    if isinstance(seg, int):
        while len(node) <= seg:
            node.append(None)
    node[seg] = value


def _child(node: Union[dict, list], seg: Segment) -> Any:
    if isinstance(seg, int):
        return node[seg] if seg < len(node) else None
    return node.get(seg)


def set_path(target: Dict[str, Any], segments: Tuple[Segment, ...], value: Any) -> None:
    node: Union[dict, list] = target
    for seg, nxt in zip(segments, segments[1:]):
        child = _child(node, seg)
        want = list if isinstance(nxt, int) else dict
        if not isinstance(child, want):
            child = want()
            _put(node, seg, child)
        node = child
    _put(node, segments[-1], value)


def _split(segments: Tuple[Segment, ...]) -> Tuple[Tuple[Segment, ...], Tuple[Segment, ...]]:
    i = next(i for i, s in enumerate(segments) if s is EACH)
    return segments[:i], segments[i + 1:]


def _instance_name(pattern: str, index: int) -> str:
    return pattern.replace("[]", f"[{index}]", 1)


# ---------------------------------------------------------------------------
# Mapping
# ---------------------------------------------------------------------------
def inbound(payload: Optional[Mapping[str, Any]], mapping: Mapping[str, str]) -> Dict[str, Any]:
    """
    Resolve every mapped external path; unresolvable paths are absent from
    the result. `mapping` is {externalPath: fieldName}.
    """
    values: Dict[str, Any] = {}
    if not isinstance(payload, Mapping):
        return values
    payload = dict(payload)
    for path, name in mapping.items():
        try:
            segments = parse_path(path)
        except ConfigError:
            log.warning("Skipping malformed inbound path %r", path)
            continue
        if EACH not in segments:
            try:
                values[name] = get_path(payload, segments)
            except TransformationPathError as exc:
                log.debug("Inbound path %s unresolved (%s)", path, exc)
            continue

        head, tail = _split(segments)
        try:
            items = get_path(payload, head)
        except TransformationPathError as exc:
            log.debug("Inbound list %s unresolved (%s)", path, exc)
            continue
        if not isinstance(items, list):
            log.debug("Inbound list %s is not a list", path)
            continue
        for index, item in enumerate(items):
            try:
                values[_instance_name(name, index)] = get_path(item, tail)
            except TransformationPathError:
                continue
    return values


def outbound(values: Optional[Mapping[str, Any]], mapping: Mapping[str, str]) -> Dict[str, Any]:
    """
    Write each mapped value to its external path, creating containers on the
    way. `mapping` is {fieldName: externalPath}; unmapped values are dropped.
    """
    payload: Dict[str, Any] = {}
    values = values or {}
    for name, path in mapping.items():
        try:
            segments = parse_path(path)
        except ConfigError:
            log.warning("Skipping malformed outbound path %r", path)
            continue
        if EACH not in segments:
            if name in values:
                set_path(payload, segments, values[name])
            continue

        head, tail = _split(segments)
        prefix, _, suffix = name.partition("[]")
        matcher = re.compile(re.escape(prefix) + r"\[(\d+)\]" + re.escape(suffix) + r"\Z")
        found = []
        for key in values:
            m = matcher.match(key)
            if m:
                found.append((int(m.group(1)), key))
        for index, key in sorted(found):
            set_path(payload, head + (index,) + tail, values[key])
    return payload
