"""
Core qrscan components.

This module contains configuration loading.
"""

from qrscan.core.config import Config, load_config

__all__ = [
    "Config",
    "load_config",
]
