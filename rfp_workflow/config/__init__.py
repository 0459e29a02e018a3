"""Configuration package."""

from rfp_workflow.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
