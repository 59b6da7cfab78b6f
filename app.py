import os
import logging
from datetime import datetime
from flask import Flask, send_from_directory
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect
from flask_cors import CORS
from flask_compress import Compress
from sqlalchemy.orm import DeclarativeBase
from werkzeug.middleware.proxy_fix import ProxyFix

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


db = SQLAlchemy(model_class=Base)
csrf = CSRFProtect()
compress = Compress()


def _database_config(database_url):
    """Engine URI and pool options; PostgreSQL in production, SQLite for development"""
    if database_url.startswith(("postgresql://", "postgres://")):
        # Ensure psycopg2 driver is specified
        if database_url.startswith("postgresql://"):
            database_url = database_url.replace("postgresql://", "postgresql+psycopg2://", 1)
        else:
            database_url = database_url.replace("postgres://", "postgresql+psycopg2://", 1)

        from urllib.parse import urlparse
        parsed = urlparse(database_url)
        logger.info(f"Connecting to PostgreSQL: host={parsed.hostname}, db={parsed.path[1:]}, user={parsed.username}")

        return database_url, {
            "pool_size": 10,
            "pool_recycle": 280,  # Slightly less than 5 minutes to prevent stale connections
            "pool_pre_ping": True,
            "max_overflow": 15,
            "pool_timeout": 20,
            "connect_args": {
                "sslmode": os.environ.get("DATABASE_SSLMODE", "require"),
                "connect_timeout": 10,
                "application_name": "ops_portal",
            }
        }
    return database_url, {
        "pool_recycle": 300,
        "pool_pre_ping": True,
    }


def create_app(config_overrides=None):
    app = Flask(__name__)
    # Enforce SESSION_SECRET requirement
    app.secret_key = os.environ.get("SESSION_SECRET")
    if not app.secret_key:
        raise RuntimeError("SESSION_SECRET environment variable is required but not set")
    # Trust one proxy for client IP, scheme and host
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    database_url, engine_options = _database_config(
        os.environ.get("DATABASE_URL") or "sqlite:///ops_portal.db"
    )
    app.config.update(
        SQLALCHEMY_DATABASE_URI=database_url,
        SQLALCHEMY_ENGINE_OPTIONS=engine_options,
        MAX_CONTENT_LENGTH=10 * 1024 * 1024,  # signatures arrive inline as base64
        PUBLIC_BASE_URL=os.environ.get("PUBLIC_BASE_URL", "https://admin.shrishgroup.com").rstrip('/'),
        DEFAULT_UPI_ID=os.environ.get("DEFAULT_UPI_ID", ""),
        SIGNATURE_STORAGE_MODE=os.environ.get("SIGNATURE_STORAGE_MODE", "inline"),
        SIGNATURE_UPLOAD_FOLDER=os.environ.get("SIGNATURE_UPLOAD_FOLDER", "uploads/signatures"),
        REFERENCE_DATA_PATH=os.environ.get("REFERENCE_DATA_PATH"),
        OPS_WHATSAPP_NUMBER=os.environ.get("OPS_WHATSAPP_NUMBER", ""),
        REVIEW_LINK=os.environ.get("REVIEW_LINK", "https://g.page/r/CaYoGVSEfXMNEBM/review"),
        TWILIO_ACCOUNT_SID=os.environ.get("TWILIO_ACCOUNT_SID"),
        TWILIO_AUTH_TOKEN=os.environ.get("TWILIO_AUTH_TOKEN"),
        TWILIO_PHONE_NUMBER=os.environ.get("TWILIO_PHONE_NUMBER"),
        COMPRESS_MIMETYPES=['application/json', 'text/html', 'text/plain'],
        COMPRESS_LEVEL=6,
        COMPRESS_MIN_SIZE=500,
    )
    if config_overrides:
        app.config.update(config_overrides)

    from utils.config_validator import ConfigValidationError, check_production_readiness
    if app.config['SIGNATURE_STORAGE_MODE'] not in ('inline', 'upload'):
        raise ConfigValidationError(
            f"SIGNATURE_STORAGE_MODE must be 'inline' or 'upload', got '{app.config['SIGNATURE_STORAGE_MODE']}'"
        )

    from utils.logging_config import setup_logging, log_request_start, log_request_end
    setup_logging(app)

    # CORS Configuration (restricted origins)
    production_origins = os.environ.get('ALLOWED_ORIGINS', '').split(',')
    allowed_origins = [origin.strip() for origin in production_origins if origin.strip()]
    if not allowed_origins:
        allowed_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
    CORS(app, origins=allowed_origins,
         supports_credentials=False,
         allow_headers=["Content-Type", "X-Requested-With", "X-Request-ID"],
         methods=["GET", "POST", "OPTIONS"])

    compress.init_app(app)
    db.init_app(app)
    csrf.init_app(app)

    from utils.reference_data import load_reference_data
    reference_data = load_reference_data(app.config['REFERENCE_DATA_PATH'])
    app.extensions['reference_data'] = reference_data
    check_production_readiness(reference_data)

    from services import build_services
    app.extensions['ops_services'] = build_services(app, reference_data)

    app.before_request(log_request_start)
    app.after_request(log_request_end)

    # The action API is called by static pages and share links, not session forms
    from api_routes import api_bp
    csrf.exempt(api_bp)
    app.register_blueprint(api_bp, url_prefix='/api')

    @app.route('/health')
    def health():
        """Simple health check endpoint for deployment readiness"""
        return {'status': 'ok', 'timestamp': datetime.utcnow().isoformat()}, 200

    @app.route('/signatures/<path:filename>')
    def signature_file(filename):
        """Serve uploaded signature images referenced by slip links"""
        upload_folder = os.path.abspath(app.config['SIGNATURE_UPLOAD_FOLDER'])
        return send_from_directory(upload_folder, filename, mimetype='image/png')

    with app.app_context():
        import models  # noqa: F401
        db.create_all()

    return app
