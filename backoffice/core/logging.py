from __future__ import annotations

import logging

from backoffice.core.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    settings = get_settings()
    resolved = (level or settings.log_level).upper()
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=resolved, format=LOG_FORMAT)
    else:
        root.setLevel(resolved)
    logging.getLogger("backoffice").setLevel(resolved)
