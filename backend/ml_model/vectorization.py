"""
Term weighting at scan time.

Contiguous word n-grams over the cleaned text, raw counts, optional
1 + ln(tf) damping, multiplied by the fitted per-term weight. No row
normalisation is applied.
"""

import logging
import math
from collections import Counter
from typing import Dict, List

from .exceptions import WeightsNotReadyError

logger = logging.getLogger(__name__)


def generate_ngrams(tokens: List[str], ngram_range) -> List[str]:
    """All contiguous n-grams for every n in the inclusive range; n < 1 is skipped."""
    min_n, max_n = ngram_range
    ngrams = []
    for n in range(max(min_n, 1), max_n + 1):
        for i in range(len(tokens) - n + 1):
            ngrams.append(' '.join(tokens[i:i + n]))
    return ngrams


def extract_tfidf_features(cleaned_text: str, bundle) -> Dict[int, float]:
    """
    Returns a sparse {vocabulary index: weight} mapping for the cleaned text.

    Out-of-vocabulary n-grams are dropped silently; vocabulary entries that
    point past the weight table are dropped with a warning.
    """
    if bundle is None:
        raise WeightsNotReadyError("term weights requested before artifacts were validated")

    vocabulary = bundle.vocabulary
    table = bundle.weight_table
    weights = table.weights

    tokens = cleaned_text.split()
    if not tokens:
        logger.warning("No tokens found in cleaned text for term weighting.")
        return {}

    term_counts = Counter(generate_ngrams(tokens, table.ngram_range))
    if not term_counts:
        logger.warning(f"No n-grams generated for ngram_range {table.ngram_range}.")
        return {}

    sparse = {}
    for term, count in term_counts.items():
        index = vocabulary.get(term)
        if index is None:
            continue
        if not 0 <= index < len(weights):
            logger.warning(
                f"Term '{term}' has vocabulary index {index}, outside the weight table (length {len(weights)})"
            )
            continue
        tf = count
        if table.sublinear_scaling and tf > 0:
            tf = 1 + math.log(tf)
        sparse[index] = tf * weights[index]

    logger.debug(f"Term-weight features generated. Non-zero count: {len(sparse)}")
    return sparse
