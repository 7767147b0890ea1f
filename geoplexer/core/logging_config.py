# geoplexer/core/logging_config.py

import logging

from geoplexer.core.config import settings

# Single application logger shared by the API and the selection client
logger = logging.getLogger("geoplexer")
logger.setLevel(logging.getLevelName(settings.LOG_LEVEL.upper()))

# Re-imports (uvicorn --reload, test collection) must not stack handlers
if not logger.handlers:
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(
        logging.Formatter(
            "[%(asctime)s] [%(levelname)s] %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(console_handler)
