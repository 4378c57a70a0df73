from __future__ import annotations

import logging

from autoedit.config import LoggingSettings


def configure_logging(settings: LoggingSettings) -> None:
    """Configure process-wide logging once at startup.

    The default format includes the thread name so interleaved batch runs stay
    attributable to their worker.
    """

    logging.basicConfig(
        level=getattr(logging, settings.level.upper(), logging.INFO),
        format=settings.format,
        force=True,
    )
