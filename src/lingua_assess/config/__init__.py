from .loader import load_settings
from .schema import GradingConfig, LoggingConfig, PathsConfig, ProficiencyConfig, Settings

__all__ = [
    "GradingConfig",
    "LoggingConfig",
    "PathsConfig",
    "ProficiencyConfig",
    "Settings",
    "load_settings",
]
