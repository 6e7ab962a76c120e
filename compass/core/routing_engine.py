"""
Routing Engine - primary/secondary path selection

Responsibilities:
- Determine the dominant core signal
- Evaluate ordered override rules at diagnostic completion
- Fall back to the top-scored and runner-up paths when no rule matches

Design principles:
- Stateless and deterministic: rules are evaluated in configured order,
  first match wins
- "No override" is a None result, not an exception
- Degenerate input (no scores at all) yields fixed default paths
"""

import logging
from typing import Optional, Sequence

from compass.contracts import (
    CORE_SIGNALS,
    PHASE_DIAGNOSTIC_COMPLETE,
    ChosenBy,
    Confidence,
    RoutingDecision,
    RoutingRule,
    SignalVector,
)

logger = logging.getLogger(__name__)

DEFAULT_PRIMARY_PATH = "levelUp"
DEFAULT_SECONDARY_PATH = "thrive"


def dominant_signal(signals: SignalVector) -> str:
    """Highest core signal; the earliest core signal wins ties."""
    best = CORE_SIGNALS[0]
    best_value = signals.value(best)
    for name in CORE_SIGNALS[1:]:
        value = signals.value(name)
        if value > best_value:
            best, best_value = name, value
    return best


def _rule_matches(rule: RoutingRule, domain_signal: str, confidence: Confidence, phase: str) -> bool:
    if rule.phase != PHASE_DIAGNOSTIC_COMPLETE or phase != PHASE_DIAGNOSTIC_COMPLETE:
        return False
    if rule.confidence_band is not None and rule.confidence_band != confidence.band:
        return False
    if rule.dominant_signal is not None and rule.dominant_signal != domain_signal:
        return False
    return True


def route(
    domain_signal: str,
    confidence: Confidence,
    phase: str,
    rules: Sequence[RoutingRule],
) -> Optional[RoutingDecision]:
    """
    Evaluate override rules.

    Args:
        domain_signal: Output of dominant_signal()
        confidence: Current classification
        phase: Current phase guard; rules only fire at 'diagnosticComplete'
        rules: Routing rules in configured order

    Returns:
        RoutingDecision for the first matching rule, None for "no override"
    """
    for rule in rules:
        if not _rule_matches(rule, domain_signal, confidence, phase):
            continue

        decision = RoutingDecision(
            primary_path=rule.primary_path,
            secondary_path=rule.secondary_path or confidence.runner_up,
            chosen_by=ChosenBy.ROUTING_RULE,
            rule_name=rule.name,
        )
        logger.info(
            f"Routing rule {rule.name or '(unnamed)'} matched: "
            f"primary={decision.primary_path} secondary={decision.secondary_path}"
        )
        return decision

    logger.debug(f"No routing rule matched (band={confidence.band}, signal={domain_signal})")
    return None


def fallback_route(confidence: Confidence) -> RoutingDecision:
    """
    Recommendation used when no override rule matched.

    The fixed default paths apply only when nothing is scored. With a single
    scored path the secondary is None.
    """
    if confidence.top is None:
        return RoutingDecision(
            primary_path=DEFAULT_PRIMARY_PATH,
            secondary_path=DEFAULT_SECONDARY_PATH,
            chosen_by=ChosenBy.RECOMMENDATION,
        )
    return RoutingDecision(
        primary_path=confidence.top,
        secondary_path=confidence.runner_up,
        chosen_by=ChosenBy.RECOMMENDATION,
    )


def decide(signals: SignalVector, confidence: Confidence, rules: Sequence[RoutingRule]) -> RoutingDecision:
    """Route at diagnostic completion, falling back to the score recommendation."""
    decision = route(dominant_signal(signals), confidence, PHASE_DIAGNOSTIC_COMPLETE, rules)
    return decision if decision is not None else fallback_route(confidence)
