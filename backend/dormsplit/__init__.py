from __future__ import annotations

from flask import Flask
from flask_cors import CORS

from dormsplit.api.routes import api_bp
from dormsplit.config import Config
from dormsplit.logging_config import setup_logger


def create_app(config_object: object = Config) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object)
    setup_logger("dormsplit", app.config.get("LOG_LEVEL", "INFO"))
    CORS(app, origins=app.config.get("CORS_ORIGINS", "*"))

    app.register_blueprint(api_bp)
    return app
