"""
Tests for the BM25 lexical index.
"""

import numpy as np

from ragindex.vector.lexical import LexicalIndex, tokenize


def test_tokenize_lowercases_and_splits():
    assert tokenize("Flex-Layout: Rows & COLUMNS_2") == ["flex", "layout", "rows", "columns_2"]
    assert tokenize(None) == []
    assert tokenize("a bb ccc", min_token_len=2) == ["bb", "ccc"]


def test_scores_are_in_insertion_order():
    """Test every document gets a score, in the order it was added."""
    index = LexicalIndex()
    index.add(["boards are containers"])
    index.add(["export boards as pdf"])
    index.add(["flex layout"])

    scores = index.scores("boards")

    assert scores.shape == (3,)
    assert scores[0] > 0 and scores[1] > 0
    assert scores[2] == 0


def test_rarer_terms_score_higher():
    """Test BM25 weights a term found in fewer documents more heavily."""
    index = LexicalIndex()
    index.add(["design board"])
    index.add(["design layer"])
    index.add(["design export"])

    scores = index.scores("design export")

    assert int(np.argmax(scores)) == 2


def test_multiple_fields_are_indexed_together():
    """Test that all field texts of a document contribute to its postings."""
    index = LexicalIndex()
    index.add(["Keep your face to the sunshine", "Helen Keller"])

    assert index.scores("keller")[0] > 0
    assert len(index) == 1
    assert index.avgdl == 8


def test_repeated_query_terms_count_once():
    index = LexicalIndex()
    index.add(["sunshine shadow"])

    assert index.scores("sunshine sunshine")[0] == index.scores("sunshine")[0]


def test_clear_resets_index():
    index = LexicalIndex()
    index.add(["anything"])
    index.clear()

    assert len(index) == 0
    assert index.scores("anything").size == 0
