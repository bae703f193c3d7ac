"""Configuration management for wpstack."""

from .manager import ConfigManager, StackConfig
from .schemas import STACK_CONFIG_SCHEMA

__all__ = ["ConfigManager", "StackConfig", "STACK_CONFIG_SCHEMA"]
