"""
Output Parsing

Single JSON extractor shared by every agent that asks the model for JSON.
"""

from .parser import extract_json, parse_json, strip_code_fences, strip_citations, truncate_for_log

__all__ = [
    "extract_json",
    "parse_json",
    "strip_code_fences",
    "strip_citations",
    "truncate_for_log",
]
