# apps/formengine/engine/session.py
"""
One user's transient session: a Navigator plus the last-call-wins guard for
responses coming back from the boundary (config fetch, submit).

    session = FormSession()
    t = session.dispatch("config")
    ...                                   # fetch happens elsewhere
    session.apply_config(t, config)       # dropped if a newer fetch was dispatched
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from ..conf.schema import FormConfig
from .arrays import normalize
from .navigation import Navigator
from .transform import inbound
from .validation import is_empty

log = logging.getLogger("formengine.session")

KINDS = ("config", "submit")


def apply_prefill(config: FormConfig, values: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy `prefillFrom` sources into fields that are still empty."""
    out = dict(values)
    for step in normalize(config, out):
        for f in step.fields:
            if not f.prefill_from or not is_empty(out.get(f.name)):
                continue
            source = out.get(f.prefill_from)
            if not is_empty(source):
                out[f.name] = source
    return out


def initial_values(config: FormConfig, external_payload: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for step in config.steps:
        for f in step.fields:
            if f.default_value is not None:
                values.setdefault(f.name, f.default_value)
    if external_payload:
        values.update(inbound(external_payload, config.transformations.inbound))
    return apply_prefill(config, values)


class FormSession:
    def __init__(self, config: Optional[FormConfig] = None, external_payload: Optional[Mapping[str, Any]] = None):
        self._tickets = {kind: 0 for kind in KINDS}
        self.navigator: Optional[Navigator] = None
        self.last_submission: Any = None
        if config is not None:
            self._start(config, external_payload)

    @property
    def config(self) -> Optional[FormConfig]:
        return self.navigator.config if self.navigator else None

    def _start(self, config: FormConfig, external_payload: Optional[Mapping[str, Any]] = None) -> None:
        self.navigator = Navigator(config, initial_values(config, external_payload))
        log.info("Session started on form %s (%d visible steps)", config.id, self.navigator.total)

    # ---------- stale-response guard ----------
    def dispatch(self, kind: str) -> int:
        if kind not in self._tickets:
            raise ValueError(f"Unknown request kind '{kind}'")
        self._tickets[kind] += 1
        return self._tickets[kind]

    def accept(self, kind: str, ticket: int) -> bool:
        return self._tickets.get(kind) == ticket

    def apply_config(self, ticket: int, config: FormConfig, external_payload: Optional[Mapping[str, Any]] = None) -> bool:
        if not self.accept("config", ticket):
            log.info("Dropping stale config response (ticket %s, latest %s)", ticket, self._tickets["config"])
            return False
        self._start(config, external_payload)
        return True

    def apply_submission(self, ticket: int, result: Any) -> bool:
        if not self.accept("submit", ticket):
            log.info("Dropping stale submit response (ticket %s, latest %s)", ticket, self._tickets["submit"])
            return False
        self.last_submission = result
        return True

    # ---------- delegation ----------
    def set_value(self, name: str, value: Any) -> None:
        self._require().set_value(name, value)

    def update(self, values: Mapping[str, Any]) -> None:
        self._require().update(values)

    def _require(self) -> Navigator:
        if self.navigator is None:
            raise RuntimeError("Session has no form configuration yet")
        return self.navigator
