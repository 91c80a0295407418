"""
Environment-specific logging configuration
"""
import os
import logging
from typing import Dict, Any


def get_logging_config() -> Dict[str, Any]:
    """Get logging configuration based on environment"""

    is_production = os.getenv("RENDER") is not None or os.getenv("ENV") == "production"
    is_debug = os.getenv("DEBUG", "false").lower() == "true"

    config = {
        "production": {
            # Production: per-element generation chatter is suppressed
            "default_level": "WARNING",
            "console_format": "%(levelname)s - %(message)s",
            "suppress_modules": [
                "services.page_templates.generator",
                "services.page_templates.batching",
                "services.page_templates.scanner",
                "utils.supabase",
            ]
        },
        "development": {
            "default_level": "INFO",
            "console_format": "%(asctime)s - %(levelname)s - %(message)s",
            "suppress_modules": []
        },
        "debug": {
            "default_level": "DEBUG",
            "console_format": "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s",
            "suppress_modules": []
        }
    }

    if is_debug:
        selected_config = dict(config["debug"])
    elif is_production:
        selected_config = dict(config["production"])
    else:
        selected_config = dict(config["development"])

    selected_config["environment"] = "debug" if is_debug else ("production" if is_production else "development")
    if os.getenv("LOG_LEVEL"):
        selected_config["default_level"] = os.getenv("LOG_LEVEL").upper()

    return selected_config


def apply_module_levels(config: Dict[str, Any]) -> None:
    """Raise the level of modules the profile suppresses"""
    for module in config.get("suppress_modules", []):
        logging.getLogger(module).setLevel(logging.WARNING)
