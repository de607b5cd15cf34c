import os

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_jwt_extended import JWTManager
from werkzeug.exceptions import HTTPException

from errors import ApiError
from models import db
from utils.log import configure_logging, get_logger

logger = get_logger(__name__)


# ---------------- CONFIG ----------------
def load_config(app):
    load_dotenv()
    app.secret_key = os.getenv("SECRET_KEY", "fallback_secret")
    app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv("DATABASE_URL", "sqlite:///cleanup.db")
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config["JWT_SECRET_KEY"] = os.getenv("JWT_SECRET_KEY", "jwt_fallback")
    app.config["JWT_EXPIRES_DAYS"] = int(os.getenv("JWT_EXPIRES_DAYS", "3"))

    app.config["EMAIL_ADDRESS"] = os.getenv("EMAIL_ADDRESS")
    app.config["EMAIL_PASSWORD"] = os.getenv("EMAIL_PASSWORD")
    app.config["MAIL_SERVER"] = os.getenv("MAIL_SERVER", "smtp.gmail.com")
    app.config["MAIL_PORT"] = int(os.getenv("MAIL_PORT", "587"))
    app.config["MAIL_TIMEOUT"] = float(os.getenv("MAIL_TIMEOUT", "10"))
    app.config["APP_URL"] = os.getenv("APP_URL", "http://localhost:3000")
    app.config["NOTIFY_SYNC"] = os.getenv("NOTIFY_SYNC", "0") in ("1", "true", "True")
    app.config["LOG_LEVEL"] = os.getenv("LOG_LEVEL", "INFO")


# ---------------- ERRORS ----------------
def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return e
        db.session.rollback()
        logger.exception("request.failed")
        return jsonify({"error": "Internal server error: %s" % e}), 500


# ---------------- INIT ----------------
def create_app(test_config=None):
    app = Flask(__name__)
    load_config(app)
    if test_config:
        app.config.update(test_config)

    configure_logging(app.config["LOG_LEVEL"])
    db.init_app(app)
    JWTManager(app)
    register_error_handlers(app)

    from api import api
    from admin import admin
    app.register_blueprint(api)
    app.register_blueprint(admin)

    with app.app_context():
        db.create_all()

    return app


# ---------------- MAIN ----------------
if __name__ == "__main__":
    app = create_app()
    app.run(debug=True, host="0.0.0.0", port=5000)
