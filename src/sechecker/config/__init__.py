"""
Configuration for sechecker: module profiles and engine settings.
"""

from sechecker.config.profile import Profile, apply_profile, load_profile
from sechecker.config.settings import EngineSettings, load_settings

__all__ = [
    "EngineSettings",
    "Profile",
    "apply_profile",
    "load_profile",
    "load_settings",
]
