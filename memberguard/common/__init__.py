"""Shared helpers for MemberGuard."""

from .logger import configure_from_settings, setup_logger

__all__ = ["configure_from_settings", "setup_logger"]
