# mailslot/utils/logger.py

import logging
import sys

from mailslot.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured = False


def setup_logger(level: str = LOG_LEVEL) -> logging.Logger:
    """Configure the root logger once; later calls only adjust the level."""
    global _configured

    root = logging.getLogger()
    root.setLevel(level)

    if not _configured:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        # uvicorn's access log already covers request lines
        logging.getLogger("uvicorn.access").propagate = False
        _configured = True

    return root
