import os

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))
DEFAULT_ARTIFACT_DIR = os.path.join(BASE_DIR, 'backend', 'ml_model', 'saved_model')

ARTIFACT_DIR = os.environ.get('PHISHING_ARTIFACT_DIR', DEFAULT_ARTIFACT_DIR)
MODEL_PATH = os.environ.get('PHISHING_MODEL_PATH', os.path.join(ARTIFACT_DIR, 'phishing_classifier.joblib'))
MODEL_INPUT_NAME = os.environ.get('PHISHING_MODEL_INPUT_NAME', 'float_input')

LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get('CORS_ORIGINS', 'chrome-extension://*,https://mail.google.com').split(',')
    if origin.strip()
]


def as_dict():
    """Values copied into app.config by create_app()."""
    return {
        'ARTIFACT_DIR': ARTIFACT_DIR,
        'MODEL_PATH': MODEL_PATH,
        'MODEL_INPUT_NAME': MODEL_INPUT_NAME,
        'LOG_LEVEL': LOG_LEVEL,
        'CORS_ORIGINS': CORS_ORIGINS,
        'SECRET_KEY': os.environ.get('SECRET_KEY') or os.urandom(32),
        'INFERENCE_ENGINE': None,
    }
