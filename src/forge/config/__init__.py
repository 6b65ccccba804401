"""Configuration management."""

from .settings import ObservabilityConfig, Settings, VotingConfig, get_settings

__all__ = ["Settings", "VotingConfig", "ObservabilityConfig", "get_settings"]
