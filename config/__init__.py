"""
Configuration package for Scrape Hub.
"""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
