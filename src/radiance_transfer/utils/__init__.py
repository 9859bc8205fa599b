"""Utilities module."""

from .config import PRTConfig
from .metadata import MetadataWriter

__all__ = ["PRTConfig", "MetadataWriter"]
