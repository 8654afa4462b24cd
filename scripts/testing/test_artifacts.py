import dataclasses
import json
import logging
import threading
import time

import pytest

from backend.ml_model.artifacts import (
    LOADER_THREAD_PREFIX,
    SELECTOR_INFO_FILE,
    VOCABULARY_FILE,
    WEIGHT_DATA_FILE,
    ArtifactStore,
    build_artifact_bundle,
    load_artifact_bundle,
)
from backend.ml_model.exceptions import ArtifactValidationError, InitializationError

# === Loading and validation ===

def test_load_from_directory(artifact_dir):
    bundle = load_artifact_bundle(artifact_dir)
    assert dict(bundle.vocabulary) == {"free": 0, "account": 1, "verify account": 2}
    assert bundle.weight_table.weights == (1.5, 2.0, 3.0)
    assert bundle.weight_table.ngram_range == (1, 2)
    assert bundle.feature_names == ("word_count", "num_links")
    assert bundle.selector_info.k == 3
    assert bundle.selector_info.selected_indices == (4, 0, 3)

def test_bundle_is_immutable(bundle):
    with pytest.raises(TypeError):
        bundle.vocabulary["phish"] = 9
    with pytest.raises(dataclasses.FrozenInstanceError):
        bundle.selector_info.k = 1

def test_legacy_field_names(artifact_documents):
    artifact_documents["weight_data"] = {"idf_weights": [1.0, 1.0, 1.0], "ngram_range": [1, 1], "sublinear_tf": True}
    selector = artifact_documents["selector_info"]
    selector["num_tfidf_features"] = selector.pop("num_term_features")
    bundle = build_artifact_bundle(**artifact_documents)
    assert bundle.weight_table.sublinear_scaling is True
    assert bundle.selector_info.num_term_features == 3

def test_missing_file_names_the_artifact(artifact_dir):
    (artifact_dir / VOCABULARY_FILE).unlink()
    with pytest.raises(ArtifactValidationError) as exc_info:
        load_artifact_bundle(artifact_dir)
    assert exc_info.value.artifact == "vocabulary"

def test_invalid_utf8_names_the_artifact(artifact_dir):
    (artifact_dir / VOCABULARY_FILE).write_bytes(b'{"fr\xffee": 0}')
    with pytest.raises(ArtifactValidationError) as exc_info:
        load_artifact_bundle(artifact_dir)
    assert exc_info.value.artifact == "vocabulary"
    assert isinstance(exc_info.value.original_error, UnicodeDecodeError)

def test_malformed_json(artifact_dir):
    (artifact_dir / SELECTOR_INFO_FILE).write_text("{not json", encoding="utf-8")
    with pytest.raises(ArtifactValidationError) as exc_info:
        load_artifact_bundle(artifact_dir)
    assert exc_info.value.artifact == "selector_info"
    assert exc_info.value.original_error is not None

@pytest.mark.parametrize("document, field, value", [
    ("vocabulary", None, ["free", "account"]),
    ("vocabulary", "free", {"free": -1}),
    ("vocabulary", "free", {"free": "0"}),
    ("weight_data", "weights", [1.0, "two"]),
    ("weight_data", "ngram_range", [1, 2, 3]),
    ("weight_data", "sublinear_scaling", "yes"),
    ("selector_info", "k", -1),
    ("selector_info", "k", "some"),
    ("selector_info", "selected_indices", "0,1"),
    ("selector_info", "num_manual_features", True),
])
def test_invalid_fields_are_rejected(artifact_documents, document, field, value):
    if document == "vocabulary":
        artifact_documents["vocabulary"] = value
    else:
        artifact_documents[document][field] = value
    with pytest.raises(ArtifactValidationError) as exc_info:
        build_artifact_bundle(**artifact_documents)
    assert exc_info.value.field == field

def test_missing_required_field(artifact_documents):
    del artifact_documents["weight_data"]["ngram_range"]
    with pytest.raises(ArtifactValidationError, match="ngram_range"):
        build_artifact_bundle(**artifact_documents)

def test_empty_feature_names_rejected(artifact_documents):
    artifact_documents["feature_names"] = []
    with pytest.raises(ArtifactValidationError):
        build_artifact_bundle(**artifact_documents)

def test_contract_drift_only_warns(artifact_documents, caplog):
    artifact_documents["selector_info"]["total_features_before_selection"] = 7
    artifact_documents["selector_info"]["k"] = 2
    artifact_documents["feature_names"] = ["word_count"]
    with caplog.at_level(logging.WARNING):
        build_artifact_bundle(**artifact_documents)
    assert "Feature count mismatch" in caplog.text
    assert "len(selected_indices)" in caplog.text
    assert "every scan will fail at assembly" in caplog.text

# === ArtifactStore ===

def test_store_hands_out_one_snapshot(artifact_dir):
    store = ArtifactStore(artifact_dir)
    assert store.status() == {"ready": False, "loading": False, "error": None}
    store.start()
    first = store.wait_ready(timeout=5)
    assert store.wait_ready(timeout=5) is first
    assert store.status() == {"ready": True, "loading": False, "error": None}

def test_start_is_idempotent(artifact_dir):
    store = ArtifactStore(artifact_dir)
    assert store.start() is store.start()

def test_failed_load_is_sticky_until_reload(write_artifacts, artifact_documents, tmp_path):
    directory = tmp_path / "artifacts"
    directory.mkdir()
    store = ArtifactStore(directory)

    for _ in range(2):
        with pytest.raises(InitializationError) as exc_info:
            store.wait_ready(timeout=5)
        assert isinstance(exc_info.value.__cause__, ArtifactValidationError)
    status = store.status()
    assert status["ready"] is False
    assert "file not found" in status["error"]

    write_artifacts(artifact_documents, directory)
    bundle = store.reload()
    assert store.wait_ready() is bundle
    assert store.status()["ready"] is True

def test_failed_reload_disables_scanning(artifact_dir):
    store = ArtifactStore(artifact_dir)
    store.wait_ready(timeout=5)
    (artifact_dir / WEIGHT_DATA_FILE).write_text(json.dumps({"weights": []}), encoding="utf-8")
    with pytest.raises(InitializationError):
        store.reload()
    with pytest.raises(InitializationError):
        store.wait_ready()
    assert store.status()["ready"] is False

def test_wait_ready_times_out_while_loading(bundle):
    release = threading.Event()

    def slow_loader(_):
        release.wait(5)
        return bundle

    store = ArtifactStore("unused", loader=slow_loader)
    store.start()
    assert store.status() == {"ready": False, "loading": True, "error": None}
    with pytest.raises(InitializationError):
        store.wait_ready(timeout=0.01)
    release.set()
    assert store.wait_ready(timeout=5) is bundle

def test_undecodable_artifact_disables_scanning(artifact_dir):
    (artifact_dir / VOCABULARY_FILE).write_bytes(b'{"fr\xffee": 0}')
    store = ArtifactStore(artifact_dir)
    with pytest.raises(InitializationError):
        store.wait_ready(timeout=5)
    with pytest.raises(InitializationError):
        store.reload()
    assert store.status()["ready"] is False

def test_loader_thread_exits_after_load(artifact_dir):
    store = ArtifactStore(artifact_dir)
    store.wait_ready(timeout=5)

    deadline = time.monotonic() + 5
    while time.monotonic() < deadline:
        if not any(t.name.startswith(LOADER_THREAD_PREFIX) for t in threading.enumerate()):
            break
        time.sleep(0.01)
    assert not any(t.name.startswith(LOADER_THREAD_PREFIX) for t in threading.enumerate())
