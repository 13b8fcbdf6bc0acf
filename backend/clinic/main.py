import logging
import os

from dotenv import load_dotenv

# Load environment variables conditionally
# Only load from .env when DATABASE_URL is not already defined by the environment
if not os.getenv("DATABASE_URL"):
    load_dotenv()

from flask import Flask, jsonify  # noqa: E402

from clinic.controllers.visit_controller import visits_bp  # noqa: E402
from clinic.core import config  # noqa: E402
from clinic.core.logging_config import setup_logging  # noqa: E402
from clinic.db.session import create_tables  # noqa: E402

logger = logging.getLogger(__name__)


def create_app(service_factory=None, testing: bool = False) -> Flask:
    """Application factory.

    Args:
        service_factory: Optional callable `(db_session) -> VisitService`
            replacing the default SQLAlchemy wiring (used by tests).
        testing: Enables Flask testing mode and skips log files.
    """
    app = Flask(__name__)

    env = os.getenv("FLASK_ENV", "development")
    is_production = env == "production"

    testing_env = os.getenv("TESTING", "").lower().strip()
    if testing or testing_env in ("true", "1", "yes"):
        app.config["TESTING"] = True

    log_to_file = os.getenv("LOG_TO_FILE", "1") == "1" and not app.config.get(
        "TESTING"
    )
    setup_logging(
        app=app,  # Pass app to register request/response hooks
        log_level=logging.INFO if is_production else logging.DEBUG,
        enable_sql_echo=os.getenv("SQL_ECHO", "0") == "1",
        log_to_file=log_to_file,
        use_json_format=is_production,  # JSON logs in production, colored in dev
    )
    logger.info(
        "Logging configured",
        extra={"context": {"environment": env, "json_format": is_production}},
    )

    config.log_timezone_config()
    config.log_scheduling_config()

    app.config["SECRET_KEY"] = os.getenv("FLASK_SECRET_KEY", "dev-secret-change-me")
    app.config["VISIT_SERVICE_FACTORY"] = service_factory

    app.register_blueprint(visits_bp)

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok"}), 200

    @app.cli.command("create-tables")
    def create_tables_command():
        """Create all database tables."""
        create_tables()
        logger.info("Database tables created successfully")

    return app
