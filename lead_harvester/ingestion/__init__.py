"""Loading of company work items from CSV and Excel spreadsheets."""
from __future__ import annotations

from .loaders import UnsupportedFileTypeError, load_work_items

__all__ = ["UnsupportedFileTypeError", "load_work_items"]
