import logging

from catalogue_service.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: str | None = None) -> None:
    level = (level or settings.LOG_LEVEL).upper()
    root = logging.getLogger()
    if root.handlers:
        # uvicorn or pytest already installed handlers
        root.setLevel(level)
    else:
        logging.basicConfig(level=level, format=LOG_FORMAT)

    if settings.SQL_ECHO:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
