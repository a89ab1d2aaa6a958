import logging
import logging.config
import os
from pathlib import Path

_LOGGING_CONF = Path(__file__).resolve().parent / "logging.conf"

logging.config.fileConfig(str(_LOGGING_CONF), disable_existing_loggers=False)

logger = logging.getLogger("pastebox")

# LOG_LEVEL overrides the file's level without editing it
_level = os.getenv("LOG_LEVEL")
if _level:
    logger.setLevel(_level.upper())
