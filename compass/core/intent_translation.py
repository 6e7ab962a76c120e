"""
Intent Translation Engine - supervisor coaching content

Matches ordered rules against the primary path and its version record.
The first rule whose path guard and every field condition match wins; with
no match the configured fallback translation is used. Every result field
falls back independently to a generic value when the chosen source omits it.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from compass.contracts import IntentTranslation, TranslationRule
from compass.utils.dotted_paths import get_deep

logger = logging.getLogger(__name__)

GENERIC_COACHING_FOCUS = ("Help them turn this direction into one concrete, time-boxed experiment.",)
GENERIC_WATCH_OUTS = ("Treating this as a final decision rather than a test.",)
GENERIC_TRANSLATION = "They want to explore this direction and build evidence before committing to it."
GENERIC_LEADER_ASK = "Help them find one real opportunity to test this direction."
GENERIC_PRESSURE_TEST = "What would tell you, in a few weeks, that this is the right direction?"
GENERIC_SUCCESS_CRITERIA = ("They have run at least one experiment and can describe what they learned.",)
GENERIC_CHECKPOINT_DAYS = 30


def _as_tuple(value: Any, default: Tuple[str, ...]) -> Tuple[str, ...]:
    if value is None:
        return default
    if isinstance(value, str):
        return (value,) if value else default
    items = tuple(str(v) for v in value if v)
    return items or default


def _as_days(value: Any) -> int:
    if isinstance(value, bool) or value is None:
        return GENERIC_CHECKPOINT_DAYS
    try:
        days = int(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid checkpointDays {value!r}, using {GENERIC_CHECKPOINT_DAYS}")
        return GENERIC_CHECKPOINT_DAYS
    return days if days > 0 else GENERIC_CHECKPOINT_DAYS


def to_translation(fields: Mapping[str, Any]) -> IntentTranslation:
    """Build an IntentTranslation, filling each missing field generically."""
    return IntentTranslation(
        coaching_focus=_as_tuple(fields.get("coachingFocus"), GENERIC_COACHING_FOCUS),
        watch_outs=_as_tuple(fields.get("watchOuts"), GENERIC_WATCH_OUTS),
        translation=fields.get("translation") or GENERIC_TRANSLATION,
        leader_ask=fields.get("leaderAsk") or GENERIC_LEADER_ASK,
        pressure_test=fields.get("pressureTest") or GENERIC_PRESSURE_TEST,
        success_criteria=_as_tuple(fields.get("successCriteria"), GENERIC_SUCCESS_CRITERIA),
        checkpoint_days=_as_days(fields.get("checkpointDays")),
    )


def rule_matches(rule: TranslationRule, primary_path: str, version: Dict[str, Any]) -> bool:
    if rule.primary_path is not None and rule.primary_path != primary_path:
        return False
    for field_name, expected in rule.conditions:
        if get_deep(version, field_name) != expected:
            return False
    return True


def find_rule(primary_path: str, version: Dict[str, Any],
              rules: Sequence[TranslationRule]) -> Optional[TranslationRule]:
    for rule in rules:
        if rule_matches(rule, primary_path, version):
            return rule
    return None


def translate(primary_path: str, version: Dict[str, Any], rules: Sequence[TranslationRule],
              fallback: Sequence[Tuple[str, Any]]) -> IntentTranslation:
    """
    Translate a path/version into coaching content.

    Args:
        primary_path: Settled primary path
        version: That path's version record
        rules: Translation rules in configured order
        fallback: Configured fallback translation fields

    Returns:
        IntentTranslation with every field populated
    """
    rule = find_rule(primary_path, version, rules)
    if rule is None:
        logger.info(f"No intent translation rule for {primary_path}, using fallback")
        return to_translation(dict(fallback))

    logger.debug(f"Intent translation rule matched for {primary_path}: {dict(rule.conditions)}")
    return to_translation(dict(rule.then))
