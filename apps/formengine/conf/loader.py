# apps/formengine/conf/loader.py
from __future__ import annotations

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Union

import yaml
from pydantic import ValidationError as PydanticValidationError

from ..engine.errors import ConfigError, FormNotFound
from .schema import FormConfig

log = logging.getLogger("formengine.conf")

CONFIG_SUFFIXES = (".yaml", ".yml", ".json")

# -------------------------
# Helpers
# -------------------------


def _read_file(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            if path.suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f) or {}
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"{path.name}: unreadable form definition ({e})") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name}: a form definition must be a mapping, got {type(data).__name__}")
    return data


def parse_config(raw: Mapping[str, Any], *, source: str = "<memory>") -> FormConfig:
    """Validate one raw definition; pydantic errors become ConfigError naming the source."""
    try:
        return FormConfig.model_validate(raw)
    except PydanticValidationError as e:
        raise ConfigError(f"{source}: invalid form definition\n{e}") from e


def load_file(path: Union[str, Path]) -> FormConfig:
    path = Path(path)
    return parse_config(_read_file(path), source=path.name)


# -------------------------
# Registry
# -------------------------


class ConfigRegistry:
    """
    Read-only map form id -> FormConfig. Built once (AppConfig.ready or a test)
    and handed to whoever needs it; there is no reload, build a new one instead.
    """

    def __init__(self, configs: Iterable[FormConfig] = ()):
        by_id: Dict[str, FormConfig] = {}
        for cfg in configs:
            if cfg.id in by_id:
                raise ConfigError(f"Duplicate form id '{cfg.id}'")
            by_id[cfg.id] = cfg
        self._configs = MappingProxyType(by_id)

    @classmethod
    def from_directory(cls, directory: Union[str, Path]) -> "ConfigRegistry":
        root = Path(directory)
        if not root.is_dir():
            raise ConfigError(f"Form definition directory not found: {root}")
        files = sorted(p for p in root.iterdir() if p.is_file() and p.suffix in CONFIG_SUFFIXES)
        registry = cls(load_file(p) for p in files)
        log.info("Loaded %d form definition(s) from %s", len(registry), root)
        return registry

    @classmethod
    def from_raw(cls, raws: Iterable[Mapping[str, Any]]) -> "ConfigRegistry":
        return cls(parse_config(raw) for raw in raws)

    def __len__(self) -> int:
        return len(self._configs)

    def __contains__(self, form_id: object) -> bool:
        return form_id in self._configs

    def ids(self) -> List[str]:
        return list(self._configs)

    def get(self, form_id: str) -> FormConfig:
        try:
            return self._configs[form_id]
        except KeyError:
            raise FormNotFound(form_id) from None

    def summaries(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": cfg.metadata.id,
                "name": cfg.metadata.name,
                "version": cfg.metadata.version,
                "description": cfg.metadata.description,
                "flowType": cfg.flow_config.type,
            }
            for cfg in self._configs.values()
        ]
