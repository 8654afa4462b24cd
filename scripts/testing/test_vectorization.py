import logging
import math

import pytest

from backend.ml_model.exceptions import WeightsNotReadyError
from backend.ml_model.vectorization import extract_tfidf_features, generate_ngrams


@pytest.fixture
def unigram_bundle(make_bundle):
    return make_bundle(
        vocabulary={"free": 0, "account": 1},
        weights=[1.5, 2.0],
        ngram_range=[1, 1],
        sublinear_scaling=False,
    )

# === N-grams ===

def test_generate_ngrams_inclusive_range():
    assert generate_ngrams(["a", "b", "c"], (1, 2)) == ["a", "b", "c", "a b", "b c"]

def test_generate_ngrams_skips_non_positive_sizes():
    assert generate_ngrams(["a", "b"], (0, 1)) == ["a", "b"]

def test_generate_ngrams_longer_than_text():
    assert generate_ngrams(["a"], (2, 3)) == []

# === Term weights ===

def test_raw_counts_times_weight(unigram_bundle):
    assert extract_tfidf_features("free account free", unigram_bundle) == {0: 3.0, 1: 2.0}

def test_sublinear_scaling(make_bundle):
    bundle = make_bundle(
        vocabulary={"free": 0, "account": 1},
        weights=[1.5, 2.0],
        ngram_range=[1, 1],
        sublinear_scaling=True,
    )
    result = extract_tfidf_features("free account free", bundle)
    assert result[0] == pytest.approx((1 + math.log(2)) * 1.5)
    assert result[1] == pytest.approx(2.0)

def test_bigrams_are_looked_up(bundle):
    result = extract_tfidf_features("please verify account", bundle)
    assert result == {1: 2.0, 2: 3.0}

def test_out_of_vocabulary_terms_are_skipped(unigram_bundle):
    assert extract_tfidf_features("nothing known here", unigram_bundle) == {}

def test_empty_text_gives_empty_vector(unigram_bundle):
    assert extract_tfidf_features("", unigram_bundle) == {}
    assert extract_tfidf_features("   ", unigram_bundle) == {}

def test_index_outside_weight_table_is_dropped(make_bundle, caplog):
    bundle = make_bundle(vocabulary={"free": 5, "account": 0}, weights=[2.0], ngram_range=[1, 1])
    with caplog.at_level(logging.WARNING):
        result = extract_tfidf_features("free account", bundle)
    assert result == {0: 2.0}
    assert "outside the weight table" in caplog.text

def test_requires_validated_artifacts():
    with pytest.raises(WeightsNotReadyError):
        extract_tfidf_features("free account", None)
