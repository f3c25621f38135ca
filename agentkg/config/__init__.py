"""
Configuration for agentkg: store settings, per-call options, prompt config.
"""

from agentkg.config.settings import (
    DEFAULT_BATCH_SIZE,
    SUPPORTED_BACKENDS,
    ExtractionOptions,
    GraphConfig,
    SearchOptions,
    StoreOptions,
)
from agentkg.config.prompts import load_extraction_config

__all__ = [
    "GraphConfig",
    "StoreOptions",
    "SearchOptions",
    "ExtractionOptions",
    "DEFAULT_BATCH_SIZE",
    "SUPPORTED_BACKENDS",
    "load_extraction_config",
]
