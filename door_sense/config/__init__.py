"""
Configuration management package
"""

from .settings import get_settings, get_test_settings, Settings

__all__ = ["get_settings", "get_test_settings", "Settings"]
