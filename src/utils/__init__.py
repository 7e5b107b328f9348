"""Shared utilities: settings and domain helpers."""

from .config import Settings, get_settings
from .domains import clean_domain, strip_www, is_same_domain, classify_domain_type

__all__ = [
    "Settings",
    "get_settings",
    "clean_domain",
    "strip_www",
    "is_same_domain",
    "classify_domain_type",
]
