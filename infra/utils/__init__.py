"""Utility modules for infrastructure layer"""

from . import datetime_utils

__all__ = [
    "datetime_utils",
]
