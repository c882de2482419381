"""skillctl - Secure manager for AI editor skills."""

__version__ = "0.1.0"

from skillctl.config import ProjectConfig, Settings, SkillEntry
from skillctl.manager import SkillManager

__all__ = ["ProjectConfig", "Settings", "SkillEntry", "SkillManager", "__version__"]
