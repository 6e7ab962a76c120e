"""
Compass view - live read-back for the rendering layer

Builds the sidebar data shown after every mutation: the top two paths with
relative signal bars, the confidence pill, a sentence describing what the
system is hearing, and progress text for the current phase.
"""

import math
from typing import Any, Dict, Mapping, Optional

from compass.contracts import ConfigDocument, Confidence, SignalVector
from compass.core.confidence_classifier import top_two
from compass.core.routing_engine import dominant_signal

DOMINANT_SIGNAL_TEXT = {
    "depth": "Depth / mastery is showing up most strongly.",
    "scope": "Scope / responsibility is showing up most strongly.",
    "breadth": "Breadth / perspective is showing up most strongly.",
    "recalibration": "Recalibration / sustainability is showing up most strongly.",
}

BAND_TEXT = {
    "strong": "This is a clear signal - we can refine it with specifics.",
    "emerging": "This is forming - we'll sharpen it with a few more choices.",
}
EARLY_TEXT = "This is early - we'll treat the next steps as evidence-building, not certainty."


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def signal_percent(score: float, max_score: float) -> int:
    """Bar width relative to the best score (never divides by less than 1)."""
    return _round_half_up(score / max(max_score, 1) * 100)


def hearing_text(signals: SignalVector, confidence: Confidence) -> str:
    first = DOMINANT_SIGNAL_TEXT.get(dominant_signal(signals), "We're forming a signal.")
    second = BAND_TEXT.get(confidence.band, EARLY_TEXT)
    return f"{first} {second}"


def progress_text(config: ConfigDocument, phase: str, diagnostic_index: int,
                  primary_path: Optional[str], refinement_index: int) -> str:
    if phase == "diagnostic":
        total = len(config.diagnostic_questions)
        return f"Diagnostic: question {min(diagnostic_index + 1, total)} of {total}"
    if phase == "refinement":
        total = len(config.refinement_questions(primary_path)) if primary_path else 0
        return f"Refinement: question {min(refinement_index + 1, total)} of {total}"
    return f"Phase: {phase}"


def build_compass(
    config: ConfigDocument,
    path_scores: Mapping[str, float],
    signals: SignalVector,
    confidence: Confidence,
    phase: str,
    diagnostic_index: int,
    primary_path: Optional[str],
    refinement_index: int,
) -> Dict[str, Any]:
    """
    Assemble the compass read-back.

    Returns:
        dict with 'rows' (rank, pathId, label, short, score, percent),
        'confidence', 'confidenceText', 'hearing', 'progress'
    """
    top, runner_up, _ = top_two(path_scores)
    max_score = max(list(path_scores.values()) + [1])

    rows = []
    for rank, item in enumerate((top, runner_up), 1):
        if item is None:
            continue
        path_id, score = item
        path = config.get_path(path_id)
        rows.append({
            "rank": rank,
            "pathId": path_id,
            "label": path.label if path else path_id,
            "short": path.short if path else "",
            "score": score,
            "percent": signal_percent(score, max_score),
        })

    return {
        "rows": rows,
        "confidence": confidence.to_json(),
        "confidenceText": f"Confidence: {confidence.label}",
        "hearing": hearing_text(signals, confidence),
        "progress": progress_text(config, phase, diagnostic_index, primary_path, refinement_index),
    }
