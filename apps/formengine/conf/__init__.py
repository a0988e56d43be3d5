# apps/formengine/conf/__init__.py
from .loader import ConfigRegistry, load_file, parse_config
from .schema import FormConfig

__all__ = ["ConfigRegistry", "FormConfig", "load_file", "parse_config"]
