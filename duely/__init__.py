"""Duely: subscription tracking for households and small teams."""

__version__ = "0.1.0"
