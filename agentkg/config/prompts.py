"""
Extraction Prompt Config
========================

Loads the extraction prompt template from ``extraction.yaml`` so the
wording can change without touching the engine.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import yaml

log = structlog.get_logger()

EXTRACTION_CONFIG_PATH = Path(__file__).parent / "extraction.yaml"

# Parsed YAML, loaded once per process
_CONFIG_CACHE: Optional[Dict[str, Any]] = None


def load_extraction_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Return the ``extraction`` section of the prompt config.

    Args:
        path: Alternative YAML file. Not cached.

    Raises:
        FileNotFoundError: When the file does not exist
    """
    global _CONFIG_CACHE

    if path is not None:
        return _read(path)

    if _CONFIG_CACHE is None:
        _CONFIG_CACHE = _read(EXTRACTION_CONFIG_PATH)
        log.debug(f"Loaded extraction prompt config from {EXTRACTION_CONFIG_PATH}")
    return _CONFIG_CACHE


def _read(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    section = data.get("extraction")
    if not isinstance(section, dict):
        raise ValueError(f"Missing 'extraction' section in {path}")
    return section
