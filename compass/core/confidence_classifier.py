"""
Confidence Classifier - qualitative band from the top-two score gap

The band says how clearly one path leads the others. It is recomputed
whenever the path score table changes and is never stored independently.
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from compass.contracts import Confidence, ConfidenceBand

logger = logging.getLogger(__name__)


def rank_paths(path_scores: Mapping[str, float]) -> List[Tuple[str, float]]:
    """
    Sort path scores descending.

    The sort is stable, so paths tied on score keep configuration order
    (first-seen wins).
    """
    return sorted(path_scores.items(), key=lambda item: item[1], reverse=True)


def top_two(path_scores: Mapping[str, float]) -> Tuple[Optional[Tuple[str, float]], Optional[Tuple[str, float]], float]:
    """
    Returns:
        (top, runner_up, delta); top and runner_up are (path_id, score) or
        None, delta is 0 when fewer than two paths are scored
    """
    ranked = rank_paths(path_scores)
    top = ranked[0] if ranked else None
    runner_up = ranked[1] if len(ranked) > 1 else None
    delta = (top[1] - runner_up[1]) if (top and runner_up) else 0
    return top, runner_up, delta


def select_band(delta: float, bands: Sequence[ConfidenceBand]) -> str:
    """
    Pick the band for a score gap.

    Bands are tried from the highest threshold down; the first whose
    min_delta <= delta wins. When nothing matches (no zero-threshold band)
    the lowest band is the catch-all.
    """
    ordered = sorted(bands, key=lambda b: b.min_delta, reverse=True)
    for band in ordered:
        if delta >= band.min_delta:
            return band.id
    return ordered[-1].id


def classify(path_scores: Mapping[str, float], bands: Sequence[ConfidenceBand],
             labels: Optional[Dict[str, str]] = None) -> Confidence:
    """
    Classify the current path scores.

    Args:
        path_scores: path id -> score, in configuration order
        bands: Configured confidence bands (any order, at least one)
        labels: band id -> display label; band id is used when missing

    Returns:
        Confidence
    """
    if not bands:
        raise ValueError("At least one confidence band is required")

    top, runner_up, delta = top_two(path_scores)
    band = select_band(delta, bands)
    label = (labels or {}).get(band, band)

    logger.debug(f"Confidence: band={band} delta={delta} top={top} runner_up={runner_up}")

    return Confidence(
        band=band,
        delta=delta,
        top=top[0] if top else None,
        runner_up=runner_up[0] if runner_up else None,
        label=label,
    )
