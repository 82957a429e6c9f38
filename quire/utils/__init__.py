"""
Shared utilities for QUIRE.

Common functionality used across contexts:
- Logger setup with provenance tracking
"""

from quire.utils.logger import setup_logger

__all__ = ["setup_logger"]
