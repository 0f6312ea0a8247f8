"""
PayFlow HR - Logging Setup
"""

import logging
from typing import Optional

from payflow.config import Settings, settings as default_settings


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging from settings (DEBUG when debug is on)."""
    settings = settings or default_settings

    if settings.debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger(__name__).debug(
        f"Logging configured for {settings.app_name} ({settings.app_env})"
    )
