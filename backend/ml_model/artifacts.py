import json
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple, Union

from .exceptions import ArtifactValidationError, InitializationError

logger = logging.getLogger(__name__)

# File names written by the offline export. Keep in sync with the training notebook.
VOCABULARY_FILE = "tfidf_vocabulary.json"
WEIGHT_DATA_FILE = "tfidf_idf_data.json"
FEATURE_NAMES_FILE = "handcrafted_feature_names.json"
SELECTOR_INFO_FILE = "selector_info.json"

LOADER_THREAD_PREFIX = "artifact-loader"

# Older exports used these keys; the new names win when both are present.
LEGACY_FIELD_NAMES = {
    "weights": "idf_weights",
    "sublinear_scaling": "sublinear_tf",
    "num_term_features": "num_tfidf_features",
}


@dataclass(frozen=True)
class WeightTable:
    weights: Tuple[float, ...]
    ngram_range: Tuple[int, int]
    sublinear_scaling: bool


@dataclass(frozen=True)
class SelectorInfo:
    selected_indices: Tuple[Any, ...]
    k: Union[int, str]
    total_before_selection: int
    num_term_features: int
    num_manual_features: int


@dataclass(frozen=True)
class ArtifactBundle:
    """Immutable snapshot of the four fitted-model artifacts."""
    vocabulary: Mapping[str, int]
    weight_table: WeightTable
    feature_names: Tuple[str, ...]
    selector_info: SelectorInfo


# ===================================================================
# === VALIDATION HELPERS ===
# ===================================================================

def _is_int(value) -> bool:
    # bool is an int subclass, but True is never a valid index or count
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _get_field(document: dict, name: str):
    if name in document:
        return document[name]
    legacy = LEGACY_FIELD_NAMES.get(name)
    if legacy and legacy in document:
        return document[legacy]
    raise KeyError(name)


def _require(document: dict, artifact: str, name: str):
    try:
        return _get_field(document, name)
    except KeyError:
        raise ArtifactValidationError(artifact, name, "required field is missing") from None


def _validate_vocabulary(vocabulary) -> Mapping[str, int]:
    artifact = "vocabulary"
    if not isinstance(vocabulary, dict):
        raise ArtifactValidationError(artifact, None, f"expected an object, got {type(vocabulary).__name__}")
    for term, index in vocabulary.items():
        if not isinstance(term, str):
            raise ArtifactValidationError(artifact, repr(term), "terms must be strings")
        if not _is_int(index) or index < 0:
            raise ArtifactValidationError(artifact, term, f"index must be a non-negative integer, got {index!r}")
    return MappingProxyType(dict(vocabulary))


def _validate_weight_data(weight_data) -> WeightTable:
    artifact = "weight_data"
    if not isinstance(weight_data, dict):
        raise ArtifactValidationError(artifact, None, f"expected an object, got {type(weight_data).__name__}")

    weights = _require(weight_data, artifact, "weights")
    if not isinstance(weights, list) or not all(_is_number(w) for w in weights):
        raise ArtifactValidationError(artifact, "weights", "expected an array of numbers")

    ngram_range = _require(weight_data, artifact, "ngram_range")
    if not isinstance(ngram_range, list) or len(ngram_range) != 2 or not all(_is_int(n) for n in ngram_range):
        raise ArtifactValidationError(artifact, "ngram_range", f"expected [min, max] integers, got {ngram_range!r}")

    sublinear = _require(weight_data, artifact, "sublinear_scaling")
    if not isinstance(sublinear, bool):
        raise ArtifactValidationError(artifact, "sublinear_scaling", f"expected a boolean, got {sublinear!r}")

    return WeightTable(
        weights=tuple(float(w) for w in weights),
        ngram_range=(ngram_range[0], ngram_range[1]),
        sublinear_scaling=sublinear,
    )


def _validate_feature_names(feature_names) -> Tuple[str, ...]:
    artifact = "handcrafted_feature_names"
    if not isinstance(feature_names, list) or not feature_names:
        raise ArtifactValidationError(artifact, None, "expected a non-empty array of feature names")
    for position, name in enumerate(feature_names):
        if not isinstance(name, str):
            raise ArtifactValidationError(artifact, f"[{position}]", f"feature names must be strings, got {name!r}")
    return tuple(feature_names)


def _validate_selector_info(selector_info) -> SelectorInfo:
    artifact = "selector_info"
    if not isinstance(selector_info, dict):
        raise ArtifactValidationError(artifact, None, f"expected an object, got {type(selector_info).__name__}")

    selected_indices = _require(selector_info, artifact, "selected_indices")
    if not isinstance(selected_indices, list):
        raise ArtifactValidationError(artifact, "selected_indices", "expected an array")

    k = _require(selector_info, artifact, "k")
    if not (_is_int(k) and k >= 0) and k != "all":
        raise ArtifactValidationError(artifact, "k", f"expected a non-negative integer or 'all', got {k!r}")

    counts = {}
    for name in ("total_features_before_selection", "num_term_features", "num_manual_features"):
        value = _require(selector_info, artifact, name)
        if not _is_int(value) or value < 0:
            raise ArtifactValidationError(artifact, name, f"expected a non-negative integer, got {value!r}")
        counts[name] = value

    # Individual selected indices are checked per scan by the selector; a bad
    # entry there only zeroes one column.
    return SelectorInfo(
        selected_indices=tuple(selected_indices),
        k=k,
        total_before_selection=counts["total_features_before_selection"],
        num_term_features=counts["num_term_features"],
        num_manual_features=counts["num_manual_features"],
    )


def _log_contract_warnings(bundle: ArtifactBundle) -> None:
    """The offline artifacts are a fixed contract; drift is reported, not enforced."""
    info = bundle.selector_info
    if info.num_term_features + info.num_manual_features != info.total_before_selection:
        logger.warning(
            f"Feature count mismatch: num_term ({info.num_term_features}) + num_manual "
            f"({info.num_manual_features}) != total_before_selection ({info.total_before_selection})"
        )
    if info.k != "all" and len(info.selected_indices) != info.k:
        logger.warning(f"selector_info: k ({info.k}) != len(selected_indices) ({len(info.selected_indices)})")
    if len(bundle.feature_names) != info.num_manual_features:
        logger.warning(
            f"handcrafted_feature_names has {len(bundle.feature_names)} entries but "
            f"num_manual_features is {info.num_manual_features}; every scan will fail at assembly"
        )
    weight_count = len(bundle.weight_table.weights)
    out_of_range = sum(1 for index in bundle.vocabulary.values() if index >= weight_count)
    if out_of_range:
        logger.warning(f"{out_of_range} vocabulary indices are outside the weight table (length {weight_count})")


def build_artifact_bundle(vocabulary, weight_data, feature_names, selector_info) -> ArtifactBundle:
    """
    Validates the four already-parsed artifact documents and freezes them.
    Raises ArtifactValidationError naming the first offending artifact/field.
    """
    bundle = ArtifactBundle(
        vocabulary=_validate_vocabulary(vocabulary),
        weight_table=_validate_weight_data(weight_data),
        feature_names=_validate_feature_names(feature_names),
        selector_info=_validate_selector_info(selector_info),
    )
    _log_contract_warnings(bundle)
    return bundle


def _read_json(path: Path, artifact: str):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise ArtifactValidationError(artifact, None, f"file not found: {path}", original_error=e) from e
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ArtifactValidationError(artifact, None, f"could not read {path.name}", original_error=e) from e


def load_artifact_bundle(artifact_dir) -> ArtifactBundle:
    """Reads all four artifacts from disk. All or nothing."""
    artifact_dir = Path(artifact_dir)
    logger.info(f"Loading artifacts from {artifact_dir}...")
    documents = (
        _read_json(artifact_dir / VOCABULARY_FILE, "vocabulary"),
        _read_json(artifact_dir / WEIGHT_DATA_FILE, "weight_data"),
        _read_json(artifact_dir / FEATURE_NAMES_FILE, "handcrafted_feature_names"),
        _read_json(artifact_dir / SELECTOR_INFO_FILE, "selector_info"),
    )
    bundle = build_artifact_bundle(*documents)
    logger.info(
        f"✅ Artifacts loaded: vocabulary={len(bundle.vocabulary)}, "
        f"manual_features={len(bundle.feature_names)}, k={bundle.selector_info.k}"
    )
    return bundle


# ===================================================================
# === ARTIFACT STORE (ONE-TIME INITIALIZATION GATE) ===
# ===================================================================

class ArtifactStore:
    """
    Loads the artifacts once, in the background, and hands out the same
    immutable snapshot to every scan.

    A failed load is sticky: wait_ready() keeps raising InitializationError
    until reload() succeeds.
    """

    def __init__(self, artifact_dir, loader=load_artifact_bundle):
        self.artifact_dir = Path(artifact_dir)
        self._loader = loader
        self._lock = threading.Lock()
        self._future: Optional[Future] = None

    def start(self) -> Future:
        """Starts the one-time load if it has not been started yet."""
        with self._lock:
            if self._future is None:
                executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=LOADER_THREAD_PREFIX)
                self._future = executor.submit(self._loader, self.artifact_dir)
                # the worker exits once the one load is done
                self._future.add_done_callback(lambda _: executor.shutdown(wait=False))
            return self._future

    def wait_ready(self, timeout: Optional[float] = None) -> ArtifactBundle:
        future = self.start()
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as e:
            raise InitializationError(f"artifacts not ready after {timeout}s") from e
        except ArtifactValidationError as e:
            raise InitializationError(
                "artifacts failed validation; scanning is disabled until they are reloaded",
                original_error=e,
            ) from e

    def reload(self) -> ArtifactBundle:
        """Synchronously loads a fresh snapshot. A failed reload disables scanning again."""
        future: Future = Future()
        try:
            future.set_result(self._loader(self.artifact_dir))
        except ArtifactValidationError as e:
            logger.error(f"❌ Artifact reload failed: {e}")
            future.set_exception(e)
        with self._lock:
            self._future = future
        return self.wait_ready()

    def status(self) -> dict:
        with self._lock:
            future = self._future
        if future is None or not future.done():
            return {"ready": False, "loading": future is not None, "error": None}
        error = future.exception()
        return {"ready": error is None, "loading": False, "error": str(error) if error else None}
