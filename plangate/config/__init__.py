"""
PlanGate - Configuration Package

Application settings and the static plan catalog configuration.
"""

from plangate.config.settings import Settings, get_settings, settings

__all__ = ["Settings", "get_settings", "settings"]
