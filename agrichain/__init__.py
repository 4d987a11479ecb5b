from flask import Flask
from flask_cors import CORS

from .config import Config
from .errors import ValidationError, register_error_handlers
from .extensions import db, jwt, migrate
from .logging_config import setup_logging


def create_app(config_class: type[Config] = Config) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_class)
    setup_logging(app.config.get("LOG_LEVEL", "INFO"))
    CORS(app)

    db.init_app(app)
    jwt.init_app(app)
    migrate.init_app(app, db)

    register_error_handlers(app)
    register_blueprints(app)

    @app.errorhandler(400)
    def bad_request(exc) -> tuple[dict[str, object], int]:
        error = ValidationError.single("InvalidValue", "request could not be parsed")
        return error.to_dict(), 400

    @app.get("/health")
    def health_check() -> tuple[dict[str, str], int]:
        return {"status": "ok"}, 200

    return app


def register_blueprints(app: Flask) -> None:
    from .api.v1.order_routes import order_bp
    from .api.v1.party_routes import party_bp
    from .api.v1.product_routes import product_bp
    from .api.v1.reference_routes import reference_bp
    from .api.v1.report_routes import report_bp
    from .api.v1.security_routes import security_bp

    app.register_blueprint(product_bp, url_prefix="/api/v1/products")
    app.register_blueprint(order_bp, url_prefix="/api/v1/orders")
    app.register_blueprint(party_bp, url_prefix="/api/v1/parties")
    app.register_blueprint(report_bp, url_prefix="/api/v1/reports")
    app.register_blueprint(reference_bp, url_prefix="/api/v1/reference")
    app.register_blueprint(security_bp, url_prefix="/api/v1/security")
