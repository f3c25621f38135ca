"""
Ranking Helpers
===============

BM25 keyword scoring and relative-score fusion for hybrid search.

Both object store implementations use these so keyword and hybrid scores
mean the same thing regardless of backend:

- keyword score: raw BM25 ``s`` normalized to ``s / (s + 1)``
- hybrid score: ``alpha * vector + (1 - alpha) * keyword`` after min-max
  normalizing each list to [0, 1]
"""

import math
import re
from collections import Counter
from typing import Dict, Hashable, List, Sequence, Tuple

import numpy as np

TOKEN_PATTERN = re.compile(r"\w+", re.UNICODE)

# Okapi BM25 parameters
BM25_K1 = 1.2
BM25_B = 0.75


def tokenize(text: str) -> List[str]:
    """Lowercase word tokens."""
    return TOKEN_PATTERN.findall((text or "").lower())


def bm25_scores(
    query: str,
    documents: Sequence[str],
    k1: float = BM25_K1,
    b: float = BM25_B,
) -> List[float]:
    """
    Raw BM25 score of each document for the query.

    Documents that share no term with the query score 0.0.
    """
    query_terms = set(tokenize(query))
    if not query_terms or not documents:
        return [0.0] * len(documents)

    tokenized = [tokenize(doc) for doc in documents]
    n_docs = len(tokenized)
    lengths = np.array([len(tokens) for tokens in tokenized], dtype=float)
    avg_len = float(lengths.mean()) or 1.0

    doc_freq: Counter = Counter()
    for tokens in tokenized:
        doc_freq.update(set(tokens) & query_terms)

    scores = np.zeros(n_docs, dtype=float)
    for i, tokens in enumerate(tokenized):
        if not tokens:
            continue
        tf = Counter(tokens)
        norm = k1 * (1.0 - b + b * lengths[i] / avg_len)
        for term in query_terms:
            freq = tf.get(term, 0)
            if not freq:
                continue
            n = doc_freq[term]
            idf = math.log(1.0 + (n_docs - n + 0.5) / (n + 0.5))
            scores[i] += idf * freq * (k1 + 1.0) / (freq + norm)

    return scores.tolist()


def normalize_keyword_score(score: float) -> float:
    """Map an unbounded BM25 score onto [0, 1)."""
    if score <= 0:
        return 0.0
    return score / (score + 1.0)


def min_max_normalize(scores: Dict[Hashable, float]) -> Dict[Hashable, float]:
    """Rescale to [0, 1]. A list of equal scores maps to 1.0."""
    if not scores:
        return {}
    values = list(scores.values())
    low, high = min(values), max(values)
    if high == low:
        return {key: 1.0 for key in scores}
    span = high - low
    return {key: (value - low) / span for key, value in scores.items()}


def relative_score_fusion(
    vector_scores: Dict[Hashable, float],
    keyword_scores: Dict[Hashable, float],
    alpha: float = 0.5,
) -> List[Tuple[Hashable, float]]:
    """
    Blend two ranked lists.

    Args:
        vector_scores: handle -> vector score
        keyword_scores: handle -> keyword score
        alpha: Weight of the vector side (1.0 = pure vector, 0.0 = pure keyword)

    Returns:
        (handle, fused score) pairs sorted by descending score
    """
    if not 0 <= alpha <= 1:
        raise ValueError(f"alpha must be in [0, 1], got {alpha}")

    vec = min_max_normalize(vector_scores)
    kw = min_max_normalize(keyword_scores)

    fused: Dict[Hashable, float] = {}
    for key in list(vec) + [k for k in kw if k not in vec]:
        fused[key] = alpha * vec.get(key, 0.0) + (1.0 - alpha) * kw.get(key, 0.0)

    return sorted(fused.items(), key=lambda item: item[1], reverse=True)
