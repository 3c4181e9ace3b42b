"""
Configuration System

Manages configuration for graphen with a layered approach.

Configuration Priority (highest to lowest):
    1. Programmatic (passed to GraphenConfig())
    2. Environment variables (GRAPHEN_* prefix)
    3. Config file (GraphenConfig.from_file)
    4. Built-in defaults

Modules:
    settings: GraphenConfig class
    pricing: Per-model USD prices for usage telemetry
"""

from graphen.config.settings import GraphenConfig

__all__ = ["GraphenConfig"]
