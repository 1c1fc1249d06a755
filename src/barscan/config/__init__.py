"""
Configuration management for barscan.
"""

from barscan.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
