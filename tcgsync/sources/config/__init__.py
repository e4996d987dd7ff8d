"""
Config helpers for data source defaults.
"""

from tcgsync.sources.config.loader import load_source_definitions

__all__ = ["load_source_definitions"]
