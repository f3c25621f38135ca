"""
Tests for vector similarity helpers.
"""

import pytest

from agentkg.providers.similarity import calculate_similarity, certainty, cosine_similarity


class TestSimilarity:

    def test_cosine(self):
        """Identical, orthogonal and opposite vectors."""
        assert cosine_similarity([1, 2], [2, 4]) == pytest.approx(1.0)
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
        assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)

    def test_zero_vector(self):
        """A zero vector has similarity 0."""
        assert cosine_similarity([0, 0], [1, 0]) == 0.0

    def test_metrics(self):
        """dot and euclidean (1 / (1 + d))."""
        assert calculate_similarity([1, 2], [3, 4], "dot") == pytest.approx(11.0)
        assert calculate_similarity([0, 0], [3, 4], "euclidean") == pytest.approx(1 / 6)
        assert calculate_similarity([1, 1], [1, 1], "EUCLIDEAN") == pytest.approx(1.0)

    def test_errors(self):
        """Dimension mismatch and unknown metric."""
        with pytest.raises(ValueError, match="dimensions"):
            calculate_similarity([1], [1, 2])
        with pytest.raises(ValueError, match="Unknown similarity metric"):
            calculate_similarity([1], [1], "manhattan")

    def test_certainty(self):
        """(1 + cos) / 2, clamped."""
        assert certainty(1.0) == 1.0
        assert certainty(0.0) == 0.5
        assert certainty(-1.0) == 0.0
        assert certainty(1.0000001) == 1.0
