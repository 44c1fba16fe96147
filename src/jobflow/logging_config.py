from __future__ import annotations

import logging

from jobflow.config import get_settings


_LOG_CONFIGURED = False


def configure_logging() -> None:
    global _LOG_CONFIGURED
    if _LOG_CONFIGURED:
        return

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # python-http-client logs every SendGrid request at INFO
    logging.getLogger("python_http_client").setLevel(logging.WARNING)
    _LOG_CONFIGURED = True
