"""Share configuration handling for shareadm.

Modules:
- classify: reserved-section and principal classification rules
- store: config file parser and merge writer
"""

from .classify import classify_principal, is_reserved_section, split_principals
from .store import ConfigDocument, ConfigStore, ConfPath, parse_config, render_config

__all__ = [
    "ConfigDocument",
    "ConfigStore",
    "ConfPath",
    "classify_principal",
    "is_reserved_section",
    "parse_config",
    "render_config",
    "split_principals",
]
