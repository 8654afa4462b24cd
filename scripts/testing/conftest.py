import copy
import json

import pytest

from backend.app import create_app
from backend.ml_model.artifacts import (
    FEATURE_NAMES_FILE,
    SELECTOR_INFO_FILE,
    VOCABULARY_FILE,
    WEIGHT_DATA_FILE,
    ArtifactStore,
    build_artifact_bundle,
)
from backend.ml_model.classifier import PhishingScanPipeline

# Three term columns, two handcrafted columns; the model sees
# [num_links, "free", word_count].
ARTIFACT_DOCUMENTS = {
    "vocabulary": {"free": 0, "account": 1, "verify account": 2},
    "weight_data": {"weights": [1.5, 2.0, 3.0], "ngram_range": [1, 2], "sublinear_scaling": False},
    "feature_names": ["word_count", "num_links"],
    "selector_info": {
        "selected_indices": [4, 0, 3],
        "k": 3,
        "total_features_before_selection": 5,
        "num_term_features": 3,
        "num_manual_features": 2,
    },
}

ARTIFACT_FILES = {
    "vocabulary": VOCABULARY_FILE,
    "weight_data": WEIGHT_DATA_FILE,
    "feature_names": FEATURE_NAMES_FILE,
    "selector_info": SELECTOR_INFO_FILE,
}


class StubEngine:
    """Records every vector it is given and answers with a fixed label."""

    def __init__(self, label="PHISHING", error=None):
        self.label = label
        self.error = error
        self.vectors = []

    def __call__(self, vector):
        self.vectors.append(vector)
        if self.error is not None:
            raise self.error
        return self.label


@pytest.fixture
def artifact_documents():
    return copy.deepcopy(ARTIFACT_DOCUMENTS)


@pytest.fixture
def write_artifacts(tmp_path):
    """Writes the given documents as JSON files into a fresh directory."""
    def _write(documents, directory=None):
        directory = directory or tmp_path / "artifacts"
        directory.mkdir(parents=True, exist_ok=True)
        for key, filename in ARTIFACT_FILES.items():
            if key in documents:
                (directory / filename).write_text(json.dumps(documents[key]), encoding="utf-8")
        return directory
    return _write


@pytest.fixture
def artifact_dir(write_artifacts, artifact_documents):
    return write_artifacts(artifact_documents)


@pytest.fixture
def bundle(artifact_documents):
    return build_artifact_bundle(**artifact_documents)


@pytest.fixture
def make_bundle(artifact_documents):
    """Builds a bundle with some documents (or single fields) replaced."""
    def _make(**overrides):
        documents = copy.deepcopy(artifact_documents)
        for key, value in overrides.items():
            if key in documents:
                documents[key] = value
            else:
                for doc in ("weight_data", "selector_info"):
                    if key in documents[doc]:
                        documents[doc][key] = value
        return build_artifact_bundle(**documents)
    return _make


@pytest.fixture
def engine():
    return StubEngine()


@pytest.fixture
def pipeline(bundle, engine):
    store = ArtifactStore("unused", loader=lambda _: bundle)
    return PhishingScanPipeline(store, engine)


@pytest.fixture
def app(artifact_dir, engine):
    app = create_app({
        'TESTING': True,
        'ARTIFACT_DIR': str(artifact_dir),
        'INFERENCE_ENGINE': engine,
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()
