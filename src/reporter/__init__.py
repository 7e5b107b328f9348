"""
Niche Mining Engine - Report Rendering

HTML rendering of deep dive strategy reports.
"""

from .strategy import render_strategy_html

__all__ = ["render_strategy_html"]
