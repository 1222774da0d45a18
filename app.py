# app.py

import logging
import sys

from flask import Flask, jsonify
from flask_cors import CORS

from config import Config
from functions_service import functions_bp


def _configure_logging(level):
    logging.basicConfig(
        level=level,
        format="%(asctime)s - genius-functions - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


# --- FLASK APP FACTORY ---
def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    _configure_logging(app.config.get('LOG_LEVEL', 'INFO'))

    # Browsers call the functions cross-origin during local development
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    # --- REGISTER BLUEPRINTS ---
    app.register_blueprint(functions_bp)
    project = app.config.get('FUNCTIONS_PROJECT')
    if project:
        # Same views at the emulator-style path the client falls back to
        region = app.config.get('FUNCTIONS_REGION')
        app.register_blueprint(functions_bp, url_prefix=f"/{project}/{region}", name='emulator_functions')

    @app.route('/')
    def index():
        return jsonify({'service': 'genius-functions', 'status': 'ok'}), 200

    return app


# --- MAIN EXECUTION ---
if __name__ == '__main__':
    # The debug flag must be False in production
    app = create_app()
    # Disable the auto-reloader so scripted starts don't spawn a child process.
    app.run(debug=True, port=5000, use_reloader=False)
