from flask import Flask
from flask_cors import CORS
from werkzeug.exceptions import MethodNotAllowed
from werkzeug.middleware.proxy_fix import ProxyFix
from dotenv import load_dotenv

from config import load_config
from observability.request_context import start_request, end_request
from routes.files import files_bp
from routes.metrics import metrics_bp
from routes.upload import API_KEY_HEADER, method_not_allowed, upload_bp

# Load .env for local dev if available
load_dotenv()


def create_app(overrides=None):
    """
    Build the upload service. Configuration is read once here and kept on
    app.config; a missing UPLOAD_API_KEY raises config.ConfigError.
    """
    settings = load_config(overrides)

    app = Flask(__name__)
    app.config.update(settings)
    if overrides:
        # pass-through for Flask's own keys such as TESTING
        app.config.update({k: v for k, v in overrides.items() if k not in settings})

    if app.config["TRUST_PROXY"]:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    CORS(
        app,
        resources={r"/api/*": {"origins": "*"}},
        send_wildcard=True,
        supports_credentials=False,
        allow_headers=["Content-Type", "Authorization", API_KEY_HEADER],
        methods=["POST", "OPTIONS"],
    )

    app.register_blueprint(upload_bp, url_prefix="/api")
    app.register_blueprint(metrics_bp, url_prefix="/api")
    if app.config["SERVE_UPLOADS"]:
        app.register_blueprint(files_bp)
    app.register_error_handler(MethodNotAllowed, method_not_allowed)

    @app.before_request
    def _before():
        start_request()

    @app.after_request
    def _after(response):
        return end_request(response)

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=app.config["PORT"], threaded=True)
