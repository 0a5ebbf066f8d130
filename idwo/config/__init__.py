"""
Configuration package for the developer workflow orchestrator.

Environment-based settings built on Pydantic Settings.
"""

from .settings import AppSettings, get_settings

__all__ = ["AppSettings", "get_settings"]
