# File: word_scout/report/__init__.py
"""word_scout.report: JSON- и HTML-отчёты, используемые CLI и тестами."""

from .html_report import DEFAULT_TEMPLATE_DIR, render_html
from .json_report import render_json

__all__ = ["render_json", "render_html", "DEFAULT_TEMPLATE_DIR"]
