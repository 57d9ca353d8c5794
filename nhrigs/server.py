from __future__ import annotations

import logging
import os
from typing import Callable, Optional

from flask import Flask, Response, jsonify, render_template

from .config import AppConfig
from .core import APP_NAME, APP_VERSION, RemoteAPIError, get_rigs
from .report import build_report

PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
ASSETS_DIR = os.path.join(PACKAGE_DIR, "assets")

logger = logging.getLogger(__name__)


def create_app(config: AppConfig, fetch: Optional[Callable[[AppConfig], dict]] = None) -> Flask:
    """
    Flask app serving the rig status page.
    fetch(config) returns the raw rigs2 payload; defaults to core.get_rigs.
    """

    fetch_rigs = fetch or get_rigs
    app = Flask(__name__, static_folder=ASSETS_DIR, static_url_path="")

    def load_report() -> dict:
        return build_report(fetch_rigs(config))

    @app.errorhandler(RemoteAPIError)
    def remote_error(exc: RemoteAPIError):
        logger.error("NiceHash API request failed: %s", exc)
        return Response("Failed to fetch mining rigs from NiceHash.\n", status=502, mimetype="text/plain; charset=utf-8")

    @app.get("/health")
    def health():
        return jsonify({"ok": True})

    @app.get("/api/rigs")
    def rigs_json():
        return jsonify(load_report())

    @app.get("/")
    def index():
        html = render_template("index.html", report=load_report(), app_name=APP_NAME, app_version=APP_VERSION)
        return Response(html, mimetype="text/html; charset=utf-8")

    return app


def serve(config: AppConfig, debug: bool = False) -> None:
    app = create_app(config)
    logger.info("[%s/%s] Listen on http://localhost:%d", APP_NAME, APP_VERSION, config.port)
    app.run(host=config.host, port=config.port, debug=debug)


__all__ = ["ASSETS_DIR", "create_app", "serve"]
