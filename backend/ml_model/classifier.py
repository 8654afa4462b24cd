import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

import joblib
import numpy as np

from .assembly import combine_features, select_k_best_features
from .exceptions import ExtractionError, InferenceError, PhishingScanError
from .feature_engineering import extract_handcrafted_features, vectorize_handcrafted_features
from .text_cleaning import clean_text
from .vectorization import extract_tfidf_features

logger = logging.getLogger(__name__)

PHISHING_LABEL = "PHISHING"
SAFE_LABEL = "SAFE"
DEFAULT_INPUT_NAME = "float_input"


# ===================================================================
# === INFERENCE ENGINE ADAPTER ===
# ===================================================================

def interpret_prediction(raw):
    """Turns whatever the model returned (label, class id or score array) into a label."""
    if isinstance(raw, str):
        return raw.upper()
    values = np.asarray(raw).ravel()
    if values.size == 0:
        raise InferenceError("model returned an empty prediction")
    first = values[0]
    if isinstance(first, (str, np.str_)):
        return str(first).upper()
    # only class id 1 is phishing; any other number (class id or score) is safe
    return PHISHING_LABEL if float(first) == 1 else SAFE_LABEL


class JoblibInferenceEngine:
    """
    Serves a joblib-dumped classifier as a `vector -> label` callable.

    The model is loaded on the first prediction, once. A dump of the form
    {"model": estimator, ...} is unwrapped. Objects exposing an ONNX-style
    run(output_names, {input_name: matrix}) are fed under `input_name`.
    """

    def __init__(self, model_path, input_name=DEFAULT_INPUT_NAME):
        self.model_path = Path(model_path)
        self.input_name = input_name
        self._model = None
        self._lock = threading.Lock()

    def _load_model(self):
        with self._lock:
            if self._model is None:
                logger.info(f"Loading classifier from {self.model_path}...")
                model = joblib.load(self.model_path)
                if isinstance(model, dict) and "model" in model:
                    model = model["model"]
                self._model = model
                logger.info("✅ Classifier loaded.")
        return self._model

    def __call__(self, vector):
        model = self._load_model()
        matrix = np.asarray(vector, dtype=np.float32).reshape(1, -1)
        if hasattr(model, "run"):
            raw = model.run(None, {self.input_name: matrix})[0]
        else:
            raw = model.predict(matrix)
        return interpret_prediction(raw)


# ===================================================================
# === PIPELINE ORCHESTRATOR ===
# ===================================================================

@dataclass
class ScanResult:
    label: str
    vector_length: int
    term_feature_count: int
    handcrafted_features: dict = field(default_factory=dict)


@contextmanager
def _stage(name):
    """Tags any pipeline error raised inside the block with the stage name."""
    try:
        yield
    except PhishingScanError as e:
        if e.stage is None:
            e.stage = name
        logger.error(f"❌ Scan failed: {e}")
        raise


class PhishingScanPipeline:
    """
    Runs one scan: clean -> {handcrafted, term weights} -> assemble -> select
    -> inference. Holds no per-request state, so one instance serves
    concurrent requests.
    """

    def __init__(self, artifact_store, inference_engine, init_timeout=None):
        self.artifact_store = artifact_store
        self.inference_engine = inference_engine
        self.init_timeout = init_timeout

    def build_feature_vector(self, email):
        """Everything up to (not including) inference. Returns (vector, ScanResult without label)."""
        with _stage("initialization"):
            bundle = self.artifact_store.wait_ready(timeout=self.init_timeout)

        with _stage("extraction"):
            if not email.has_content():
                raise ExtractionError("could not extract email content (neither subject nor body text found)")

        with _stage("normalization"):
            cleaned = clean_text(f"{email.subject} {email.body_html}")
            logger.debug(f"Cleaned text sample: {cleaned[:100]}...")

        with _stage("handcrafted_features"):
            features = extract_handcrafted_features(email, cleaned, bundle.feature_names)
            handcrafted_vector = vectorize_handcrafted_features(features, bundle.feature_names)

        with _stage("term_weighting"):
            term_vector = extract_tfidf_features(cleaned, bundle)

        with _stage("assembly"):
            combined = combine_features(term_vector, handcrafted_vector, bundle.selector_info)

        with _stage("selection"):
            final_vector = select_k_best_features(combined, bundle.selector_info)

        partial = ScanResult(
            label="",
            vector_length=len(final_vector),
            term_feature_count=len(term_vector),
            handcrafted_features=features,
        )
        return final_vector, partial

    def scan(self, email):
        final_vector, result = self.build_feature_vector(email)

        with _stage("inference"):
            try:
                result.label = self.inference_engine(final_vector)
            except PhishingScanError:
                raise
            except Exception as e:
                raise InferenceError("inference engine failed", original_error=e) from e

        logger.info(f"Scan complete. Subject: [{email.subject[:30]}] -> {result.label}")
        return result
