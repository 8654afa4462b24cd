"""
Feature assembly and K-best selection.

The combined layout is [term-weight columns | handcrafted columns], and the
selector then picks columns in the exact order recorded by the offline
SelectKBest step. That order is what the classifier was fitted on.
"""

import logging
import numbers

import numpy as np

from .exceptions import ArtifactValidationError, LengthMismatchError

logger = logging.getLogger(__name__)


def combine_features(term_vector: dict, handcrafted_vector, selector_info) -> np.ndarray:
    """Builds the dense full-length vector the selector indexes into."""
    num_term = selector_info.num_term_features
    num_manual = selector_info.num_manual_features
    total = selector_info.total_before_selection

    if num_term + num_manual != total:
        logger.warning(
            f"Feature count mismatch during combination: num_term ({num_term}) + "
            f"num_manual ({num_manual}) != total_before_selection ({total})."
        )
    if len(handcrafted_vector) != num_manual:
        raise LengthMismatchError(
            f"handcrafted vector length ({len(handcrafted_vector)}) != num_manual_features ({num_manual})"
        )
    if num_term + num_manual > total:
        raise LengthMismatchError(
            f"total_before_selection ({total}) cannot hold {num_term} term columns "
            f"plus {num_manual} handcrafted columns"
        )

    combined = np.zeros(total, dtype=np.float32)
    for index, weight in term_vector.items():
        if 0 <= index < num_term:
            combined[index] = weight
        else:
            logger.warning(f"Term index {index} out of expected range (0 to {num_term - 1}); dropped.")
    combined[num_term:num_term + num_manual] = handcrafted_vector

    logger.debug(f"Combined feature vector. Length: {len(combined)}.")
    return combined


def _column_index(value, width):
    """Returns a usable integer column or None."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return None
    if isinstance(value, float) and not value.is_integer():
        return None
    index = int(value)
    if index < 0 or index >= width:
        return None
    return index


def select_k_best_features(combined: np.ndarray, selector_info) -> np.ndarray:
    """Projects the combined vector onto the selected columns, in order."""
    k = selector_info.k
    selected_indices = selector_info.selected_indices

    if k == "all":
        if len(combined) != selector_info.total_before_selection:
            logger.warning(
                f"SelectKBest 'all': vector length {len(combined)} != "
                f"total_features_before_selection {selector_info.total_before_selection}"
            )
        return combined

    if isinstance(k, bool) or not isinstance(k, int):
        raise ArtifactValidationError("selector_info", "k", f"expected an integer or 'all', got {k!r}")
    if len(selected_indices) != k:
        logger.warning(f"SelectKBest: mismatch k ({k}) and selected_indices length ({len(selected_indices)}).")

    selected = np.zeros(k, dtype=np.float32)
    for position in range(k):
        original = selected_indices[position] if position < len(selected_indices) else None
        index = _column_index(original, len(combined))
        if index is None:
            logger.warning(
                f"SelectKBest: index {original!r} at selected_indices[{position}] is invalid "
                f"or out of bounds. Defaulting to 0."
            )
            continue
        selected[position] = combined[index]

    logger.debug(f"Final feature vector after SelectKBest. Length: {len(selected)}.")
    return selected
