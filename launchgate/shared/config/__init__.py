"""
Shared Config Module
====================

Settings files read by `launchgate.shared.core.configuration`.

Structure:
- settings/: YAML configuration files (defaults, project, user)
"""

from pathlib import Path

SETTINGS_DIR = Path(__file__).resolve().parent / "settings"

__all__ = ["SETTINGS_DIR"]
