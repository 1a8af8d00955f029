"""
Configuration loading
JSON file merged over built-in defaults
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .camera_interface import CaptureConstraints

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "model": {
        "weights": "imagenet",
        "alpha": 1.0,
        "input_size": [224, 224],
        "top_k": 3
    },
    "camera": {
        "source": "auto",
        "resolution": [640, 640],
        "fps": 30,
        "samples_dir": None
    },
    "live_scan": {
        "interval_seconds": 0.8,
        "min_confidence": 0.2
    },
    "log_level": "INFO",
    "log_file": None
}


def merge_dicts(default: Dict[str, Any], user: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively overlay `user` on `default` without mutating either"""
    result = copy.deepcopy(default)
    for key, value in user.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from file or use defaults"""
    if config_path and Path(config_path).exists():
        try:
            with open(config_path, 'r') as f:
                user_config = json.load(f)
            return merge_dicts(DEFAULT_CONFIG, user_config)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load config {config_path}: {e}")
            logger.warning("Using default configuration")
    elif config_path:
        logger.warning(f"Config file {config_path} not found, using defaults")

    return copy.deepcopy(DEFAULT_CONFIG)


def camera_constraints(config: Dict[str, Any]) -> CaptureConstraints:
    """Build capture constraints from the camera section"""
    camera_config = config.get('camera', {})
    return CaptureConstraints(
        source=camera_config.get('source', 'auto'),
        resolution=tuple(camera_config.get('resolution', [640, 640])),
        fps=camera_config.get('fps', 30),
        samples_dir=camera_config.get('samples_dir'),
    )
