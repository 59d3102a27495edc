# hkv_reader/core/errors.py
from __future__ import annotations

class ConfigError(ValueError):
    """Invalid configuration or command line value; fatal before any output."""
