"""Liveness listener for hosting platforms that require a bound port.

It answers 404 to everything and shares nothing with the worker.
"""

from __future__ import annotations

import logging
import threading

import uvicorn
from fastapi import FastAPI

logger = logging.getLogger(__name__)


def build_app() -> FastAPI:
    # No routes, no docs: every request is a 404.
    return FastAPI(title="lessonbot", docs_url=None, redoc_url=None, openapi_url=None)


def start_liveness_server(port: int, host: str = "0.0.0.0") -> threading.Thread:
    config = uvicorn.Config(build_app(), host=host, port=port, log_level="warning", access_log=False)
    server = uvicorn.Server(config)

    thread = threading.Thread(target=server.run, name="liveness", daemon=True)
    thread.start()
    logger.info("Liveness listener started on %s:%s", host, port)
    return thread
