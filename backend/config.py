"""Server configuration constants and input declarations."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# Server Configuration
DEFAULT_API_PORT = 8000  # Default port for FastAPI backend

# Bookmarking
DEFAULT_STORE_MODE = "url"  # url | server | disable
DEFAULT_POLICY = "explicit"  # explicit | automatic
DEFAULT_BOOKMARK_DIR = "data/bookmarks"
STORE_MODES = ("url", "server", "disable")

# Damped pendulum demo: used when no inputs file is configured
DEMO_INPUT_DEFAULTS: Dict[str, Any] = {
    "omega": 1,
    "delta": 1,
    "damping": 1,
    "length": 1000,
}


def load_input_defaults(path: Optional[str]) -> Dict[str, Any]:
    """Load declared inputs and their defaults from a JSON object file.

    Args:
        path: Path to the JSON file, or None for the demo inputs

    Returns:
        Input id -> default value

    Raises:
        ValueError: If the file does not hold a JSON object
    """
    if not path:
        return dict(DEMO_INPUT_DEFAULTS)

    with open(Path(path), encoding="utf-8") as f:
        declared = json.load(f)
    if not isinstance(declared, dict):
        raise ValueError(f"Inputs file {path} must contain a JSON object")

    logger.info(f"Loaded {len(declared)} input declarations from {path}")
    return declared


def parse_exclude(raw: Optional[str]) -> list:
    """Split a comma-separated exclusion list, dropping blanks."""
    return [item.strip() for item in (raw or "").split(",") if item.strip()]
