"""
Test Path Intent Store - version records, dotted writes, decision log

Run with: python3 tests/test_path_intent_store.py
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from flow_fixtures import minimal_config
from compass.contracts import AnswerPhase, ChosenBy, DecisionLogEntry
from compass.core.accumulator import Answer, SignalAccumulator
from compass.core.decision_log import NO_EVIDENCE_BULLET, DecisionLog, evidence_bullets
from compass.core.path_intent_store import PathIntentStore
from compass.utils.dotted_paths import get_deep, set_deep


def _entry(n):
    return DecisionLogEntry(
        phase=AnswerPhase.DIAGNOSTIC,
        question_id=f"q{n}",
        option_id=f"o{n}",
        prompt=f"Prompt {n}",
        answer_label=f"Answer {n}",
    )


# ========================
# Dotted paths
# ========================

def test_set_deep_creates_nested_levels():
    record = {}
    set_deep(record, "stretch.kind", "project")
    set_deep(record, "stretch.size", "small")
    set_deep(record, "flat", 1)

    assert record == {"stretch": {"kind": "project", "size": "small"}, "flat": 1}


def test_set_deep_replaces_scalar_on_path():
    record = {"stretch": "yes"}
    set_deep(record, "stretch.kind", "project")

    assert record == {"stretch": {"kind": "project"}}


def test_get_deep_defaults():
    record = {"a": {"b": 1}}

    assert get_deep(record, "a.b") == 1
    assert get_deep(record, "a.c") is None
    assert get_deep(record, "a.b.c", default="x") == "x"


# ========================
# Version records
# ========================

def test_refinement_answer_writes_version_and_signals():
    config = minimal_config()
    store = PathIntentStore()
    accumulator = SignalAccumulator(config.path_ids)
    lu1, lu2 = config.refinement_questions("levelUp")

    store.apply_refinement_answer("levelUp", lu1, Answer("lu1", ("people",)), accumulator)
    store.apply_refinement_answer("levelUp", lu2, Answer("lu2", ("later",)), accumulator)

    assert store.get_version("levelUp") == {"levelUpType": "people", "timing": {"horizon": "12m"}}
    assert store.get_version_field("levelUp", "timing.horizon") == "12m"
    assert accumulator.totals["people"] == 2
    assert all(score == 0 for score in accumulator.path_scores.values())

    print("✓ Refinement answer test passed")


def test_versions_are_kept_per_path():
    config = minimal_config()
    store = PathIntentStore()
    accumulator = SignalAccumulator(config.path_ids)

    store.apply_refinement_answer(
        "levelUp", config.refinement_questions("levelUp")[0], Answer("lu1", ("scope",)), accumulator)
    store.apply_refinement_answer(
        "moveAcross", config.refinement_questions("moveAcross")[0], Answer("ma1", ("skills",)), accumulator)

    assert store.get_version("levelUp") == {"levelUpType": "scope"}
    assert store.get_version("moveAcross") == {"acrossPurpose": "skills"}


def test_get_version_returns_copy():
    store = PathIntentStore()
    store.ensure_version("thrive")["thriveFocus"] = "craft"

    copy = store.get_version("thrive")
    copy["thriveFocus"] = "changed"

    assert store.get_version("thrive") == {"thriveFocus": "craft"}
    assert store.get_version("reset") == {}
    assert store.get_version(None) == {}


def test_set_paths_and_export():
    store = PathIntentStore()
    store.set_paths("reset", "thrive", ChosenBy.ROUTING_RULE)
    store.ensure_version("reset")

    data = store.to_json()

    assert data["primaryPath"] == "reset"
    assert data["secondaryPath"] == "thrive"
    assert data["chosenBy"] == "routingRule"
    assert data["versionOfPath"] == {"reset": {}}


# ========================
# Decision log
# ========================

def test_last_entries_in_chronological_order():
    log = DecisionLog(_entry(n) for n in range(1, 7))

    picked = log.last(4)

    assert [e.question_id for e in picked] == ["q3", "q4", "q5", "q6"]
    assert log.last(0) == ()


def test_evidence_bullets_format():
    log = DecisionLog([_entry(1)])

    assert evidence_bullets(log) == "• Prompt 1 → “Answer 1”"


def test_evidence_bullets_empty_log():
    assert evidence_bullets(DecisionLog()) == NO_EVIDENCE_BULLET


def test_entries_filtered_by_phase():
    log = DecisionLog([_entry(1)])
    log.append(DecisionLogEntry(
        phase=AnswerPhase.REFINEMENT, question_id="lu1", option_id="people",
        prompt="P", answer_label="A", path_id="levelUp",
    ))

    assert len(log.entries()) == 2
    assert [e.question_id for e in log.entries(AnswerPhase.REFINEMENT)] == ["lu1"]
    assert log.to_json()[1]["pathId"] == "levelUp"


if __name__ == '__main__':
    print("\n" + "="*60)
    print("TESTING PATH INTENT STORE")
    print("="*60 + "\n")

    test_set_deep_creates_nested_levels()
    test_set_deep_replaces_scalar_on_path()
    test_get_deep_defaults()
    test_refinement_answer_writes_version_and_signals()
    test_versions_are_kept_per_path()
    test_get_version_returns_copy()
    test_set_paths_and_export()
    test_last_entries_in_chronological_order()
    test_evidence_bullets_format()
    test_evidence_bullets_empty_log()
    test_entries_filtered_by_phase()

    print("\n" + "="*60)
    print("ALL PATH INTENT STORE TESTS PASSED ✓")
    print("="*60 + "\n")
