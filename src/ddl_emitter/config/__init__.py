"""Configuration management: emitter options and TOML loading.

Usage:
    >>> from ddl_emitter.config import load_emitter_config, EmitterOptions, EmitterConfig
"""

from ddl_emitter.config.loader import load_emitter_config
from ddl_emitter.config.models import EmitterConfig, EmitterOptions

__all__ = ["load_emitter_config", "EmitterConfig", "EmitterOptions"]
