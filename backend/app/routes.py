import logging

from flask import Blueprint, current_app, jsonify, request

from backend.ml_model.exceptions import (
    ArtifactValidationError,
    ExtractionError,
    InferenceError,
    InitializationError,
    LengthMismatchError,
    PhishingScanError,
    WeightsNotReadyError,
)
from backend.ml_model.models import RawMessageContent

logger = logging.getLogger(__name__)

# --- Blueprint Setup ---
main = Blueprint('main', __name__)

ERROR_STATUS = (
    (InitializationError, 503),
    (ExtractionError, 400),
    (InferenceError, 502),
    (LengthMismatchError, 422),
    (WeightsNotReadyError, 422),
    (ArtifactValidationError, 422),
)


def _status_for(error):
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


@main.route('/api/scan_email', methods=['POST'])
def scan_email_api():
    """
    Scans one message for the browser extension.

    Expected JSON payload:
    {
        "sender": "alerts@paypa1-secure.com",
        "subject": "Your account is locked",
        "body_text": "plain text body",
        "body_html": "<div>...</div>"
    }
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'Request body must be a JSON object', 'stage': None}), 400

    email = RawMessageContent.from_dict(data)
    pipeline = current_app.extensions['scan_pipeline']
    try:
        result = pipeline.scan(email)
    except PhishingScanError as e:
        return jsonify({'error': e.message, 'stage': e.stage}), _status_for(e)

    return jsonify({'result': result.label})


@main.route('/api/status')
def artifact_status():
    return jsonify(current_app.extensions['artifact_store'].status())


@main.route('/api/reload_artifacts', methods=['POST'])
def reload_artifacts():
    """Reloads the artifacts from disk; re-enables scanning after a failed start."""
    store = current_app.extensions['artifact_store']
    try:
        store.reload()
    except InitializationError as e:
        return jsonify({'error': str(e), **store.status()}), 503
    logger.info("✅ Artifacts reloaded via API.")
    return jsonify(store.status())
