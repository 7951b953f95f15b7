"""
Configuration management for SolAgg.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for endpoints and ingestion limits.
"""

from solagg.config.settings import AggregatorConfig, Settings, get_settings  # noqa: F401

__all__ = ["AggregatorConfig", "Settings", "get_settings"]
