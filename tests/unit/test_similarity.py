"""Unit tests for cosine similarity."""

import pytest

from src.core.errors import DataError
from src.core.similarity import cosine_similarity


@pytest.mark.unit
class TestCosineSimilarity:
    """Tests for cosine_similarity."""

    def test_identical_vectors(self):
        """Test identical vectors score 1.0."""
        assert cosine_similarity([0.3, 0.4, 0.5], [0.3, 0.4, 0.5]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        """Test orthogonal vectors score 0.0."""
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_scale_invariant(self):
        """Test vector length does not change the score."""
        assert cosine_similarity([1.0, 2.0], [10.0, 20.0]) == pytest.approx(1.0)

    def test_symmetric(self):
        """Test argument order does not matter."""
        a, b = [0.2, 0.9, 0.1], [0.7, 0.1, 0.4]

        assert cosine_similarity(a, b) == cosine_similarity(b, a)

    def test_zero_vector_scores_zero(self):
        """Test a zero vector is similar to nothing."""
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0

    @pytest.mark.parametrize("missing", [None, []])
    def test_missing_embedding_raises(self, missing):
        """Test missing embeddings raise DataError instead of guessing."""
        with pytest.raises(DataError, match="embedding"):
            cosine_similarity(missing, [1.0])

    def test_dimension_mismatch_raises(self):
        """Test vectors from different models cannot be compared."""
        with pytest.raises(DataError, match="dimensions differ"):
            cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])
