import logging
import os

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from dotenv import load_dotenv
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()
migrate = Migrate()

MIGRATIONS_DIR = os.path.join(os.path.dirname(__file__), "migrations")


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite only enforces FOREIGN KEY / ON DELETE clauses when asked to.
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_app(test_config=None):
    load_dotenv()
    load_dotenv(".env.local")

    app = Flask(__name__)
    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "dev-secret")
    app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL", "sqlite:///phishguard.db")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["GEMINI_API_KEY"] = os.getenv("GEMINI_API_KEY", "")
    app.config["GEMINI_MODEL"] = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    app.config["GEMINI_TTS_MODEL"] = os.getenv("GEMINI_TTS_MODEL", "gemini-2.5-flash-preview-tts")
    app.config["GEMINI_TIMEOUT"] = int(os.getenv("GEMINI_TIMEOUT", "60"))
    app.config["DEFAULT_TRAINEE_ID"] = int(os.getenv("DEFAULT_TRAINEE_ID", "1"))
    app.config["LOG_LEVEL"] = os.getenv("LOG_LEVEL", "INFO")

    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    db.init_app(app)
    migrate.init_app(app, db, directory=MIGRATIONS_DIR)

    # Blueprints
    from phishguard.routes.main import main_bp
    from phishguard.routes.admin import admin_bp
    app.register_blueprint(main_bp)
    app.register_blueprint(admin_bp)

    from phishguard.errors import register_error_handlers
    register_error_handlers(app)

    from phishguard.seed import seed_demo_command
    app.cli.add_command(seed_demo_command)

    if app.config["GEMINI_API_KEY"]:
        app.logger.info("Gemini API key configured.")
    else:
        app.logger.warning("GEMINI_API_KEY not set; AI generation endpoints will fail.")

    return app
