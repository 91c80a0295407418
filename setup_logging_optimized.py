import logging
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """Minimal logging setup shared by the API server, scripts and services.

    - Applies the environment logging profile when no level is given
    - Ensures a basic StreamHandler is attached once
    """
    profile = None
    if level is None:
        from config.logging_config import get_logging_config, apply_module_levels
        profile = get_logging_config()
        level = profile["default_level"]
        apply_module_levels(profile)

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(profile["console_format"] if profile else DEFAULT_FORMAT))
        root.addHandler(handler)

    try:
        root.setLevel(getattr(logging, level.upper()))
    except AttributeError:
        root.setLevel(logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger after ensuring logging is initialized."""
    if not logging.getLogger().handlers:
        setup_logging()
    return logging.getLogger(name)
