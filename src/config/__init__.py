"""Configuration module - exports Settings, load_config, and the assistant profile."""

from src.config.assistant_profile import DEFAULT_PROFILE, AssistantProfile, FaqRule
from src.config.loader import load_config
from src.config.settings import Settings

__all__ = ["DEFAULT_PROFILE", "AssistantProfile", "FaqRule", "Settings", "load_config"]
