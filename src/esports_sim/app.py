from __future__ import annotations

import logging
from typing import Mapping

import uvicorn
from fastapi import FastAPI

from .api import create_app
from .config import Settings, load_settings
from .errors import MissingConfigurationError
from .logs import configure_logging

logger = logging.getLogger(__name__)


def build_app(env: Mapping[str, str] | None = None) -> FastAPI:
    settings = load_settings(env)
    configure_logging(settings.log_level, settings.log_format)
    return create_app(settings)


def serve(settings: Settings) -> None:
    configure_logging(settings.log_level, settings.log_format)
    logger.info("Serving game shell on %s:%s", settings.host, settings.port)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


def main() -> None:
    try:
        settings = load_settings()
    except MissingConfigurationError as exc:
        configure_logging()
        logger.critical("Startup aborted: %s", exc)
        raise SystemExit(1) from exc
    serve(settings)
