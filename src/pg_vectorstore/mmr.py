"""Maximal marginal relevance selection."""

from __future__ import annotations

from typing import Sequence

from .embeddings import cosine_similarity


def maximal_marginal_relevance(
    query: Sequence[float],
    candidates: Sequence[Sequence[float]],
    lambda_mult: float = 0.5,
    k: int = 4,
) -> list[int]:
    """
    Select candidates balancing relevance to the query against redundancy.

    At each step the remaining candidate with the highest score
    ``lambda_mult * sim(query, c) - (1 - lambda_mult) * max(sim(c, s))`` over
    the already selected ``s`` is taken. The first pick is always the
    candidate most similar to the query, even for ``lambda_mult = 0``.
    Similarity is cosine similarity. On equal scores the lowest index wins.

    Args:
        query: Query embedding
        candidates: Candidate embeddings
        lambda_mult: 1 is pure relevance, 0 is maximum diversity
        k: Number of candidates to select

    Returns:
        Candidate indices in selection order (at most ``k``)

    Raises:
        ValueError: If ``lambda_mult`` is outside [0, 1]

    Example:
        ```python
        maximal_marginal_relevance([1, 0], [[1, 0], [0.9, 0.1], [0, 1]], 0.3, 2)
        # [0, 2]
        ```
    """
    if not 0.0 <= lambda_mult <= 1.0:
        raise ValueError(f"lambda_mult must be between 0 and 1, got {lambda_mult}")
    if k <= 0 or not candidates:
        return []

    relevance = [cosine_similarity(query, c) for c in candidates]
    # Highest similarity of each candidate to anything selected so far
    redundancy = [0.0] * len(candidates)
    remaining = list(range(len(candidates)))
    selected: list[int] = []

    while remaining and len(selected) < k:
        best_index = remaining[0]
        best_score = float("-inf")
        for i in remaining:
            if selected:
                score = lambda_mult * relevance[i] - (1.0 - lambda_mult) * redundancy[i]
            else:
                # First pick is the most relevant candidate for any lambda
                score = relevance[i]
            if score > best_score:
                best_index, best_score = i, score

        selected.append(best_index)
        remaining.remove(best_index)
        for i in remaining:
            similarity = cosine_similarity(candidates[i], candidates[best_index])
            if len(selected) == 1 or similarity > redundancy[i]:
                redundancy[i] = similarity

    return selected
