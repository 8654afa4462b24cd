# --- Flask and Third-Party Imports ---
import logging

from flask import Flask
from flask_cors import CORS

from backend.ml_model.artifacts import ArtifactStore
from backend.ml_model.classifier import JoblibInferenceEngine, PhishingScanPipeline

from . import config

logger = logging.getLogger(__name__)


# ===================================================================
# === APPLICATION FACTORY ===
# ===================================================================

def create_app(test_config=None):
    app = Flask(__name__)

    # --- Config ---
    app.config.update(config.as_dict())
    if test_config:
        app.config.update(test_config)

    logging.basicConfig(level=getattr(logging, app.config['LOG_LEVEL'], logging.INFO))

    # --- Scan pipeline ---
    # Artifact loading starts now, in the background; the first scan waits on it.
    artifact_store = ArtifactStore(app.config['ARTIFACT_DIR'])
    artifact_store.start()

    engine = app.config['INFERENCE_ENGINE']
    if engine is None:
        engine = JoblibInferenceEngine(app.config['MODEL_PATH'], input_name=app.config['MODEL_INPUT_NAME'])

    app.extensions['artifact_store'] = artifact_store
    app.extensions['scan_pipeline'] = PhishingScanPipeline(artifact_store, engine)
    logger.info(f"🔄 Artifact loading started from {app.config['ARTIFACT_DIR']}")

    # --- Blueprints ---
    from .routes import main
    app.register_blueprint(main)

    @app.after_request
    def set_secure_headers(response):
        response.headers['X-Frame-Options'] = 'SAMEORIGIN'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        return response

    # Add CORS configuration for the browser extension
    CORS(app, resources={
        r"/api/*": {
            "origins": app.config['CORS_ORIGINS'],
            "methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": ["Content-Type"],
            "max_age": 3600,
        }
    })

    return app
