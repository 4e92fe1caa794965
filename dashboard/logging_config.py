import logging

from dashboard.settings import get_settings


def configure_logging(level=None):
    level_name = (level or get_settings().log_level).upper()
    resolved = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
