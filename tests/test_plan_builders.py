"""
Test plan builders - experiment selection, focus statement, intent translation

Run with: python3 tests/test_plan_builders.py
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from flow_fixtures import minimal_config
from compass.core import experiment_selector, focus_statement, intent_translation
from compass.utils.template_renderer import find_slots, render_template


# ========================
# Experiments
# ========================

def test_defaults_skip_unknown_and_truncate():
    config = minimal_config()

    defaults = experiment_selector.select_defaults("levelUp", config.experiments, config.selection_rules)

    assert [e.id for e in defaults] == ["lu_a", "lu_b"]


def test_defaults_for_path_without_suggestions():
    config = minimal_config()

    assert experiment_selector.select_defaults("reset", config.experiments, config.selection_rules) == ()


def test_toggle_respects_max_pick():
    selection = ("lu_a", "lu_b", "lu_c")

    assert experiment_selector.toggle_experiment(selection, "lu_d", 3) == selection
    assert experiment_selector.toggle_experiment(selection, "lu_b", 3) == ("lu_a", "lu_c")
    assert experiment_selector.toggle_experiment(("lu_a",), "lu_d", 3) == ("lu_a", "lu_d")


def test_experiments_for_path():
    config = minimal_config()

    ids = [e.id for e in experiment_selector.experiments_for_path("moveAcross", config.experiments)]

    assert ids == ["ma_a"]


# ========================
# Templates
# ========================

def test_render_leaves_unknown_slots():
    assert render_template("{a} and {b} and {a}", {"a": "x"}) == "x and {b} and x"
    assert find_slots("{a} {b} {a}") == ["a", "b"]


# ========================
# Focus statement
# ========================

def test_focus_uses_descriptor_and_first_experiment():
    config = minimal_config()
    experiments = [config.get_experiment("lu_b"), config.get_experiment("lu_a")]

    statement = focus_statement.build(
        "levelUp", {"levelUpType": "people"}, experiments, config.focus_template("levelUp"))

    assert statement == "I want to grow toward leading people, starting with Shadow a manager."

    print("✓ Focus statement test passed")


def test_focus_falls_back_to_default_descriptor():
    config = minimal_config()

    statement = focus_statement.build("levelUp", {}, [], config.focus_template("levelUp"))

    assert statement == (
        "I want to grow toward greater responsibility and impact, "
        "starting with one meaningful stretch experiment."
    )


def test_focus_unrecognised_value_uses_default():
    config = minimal_config()
    template = config.focus_template("levelUp")

    assert focus_statement.resolve_descriptor(template, {"levelUpType": "other"}) == \
        "greater responsibility and impact"


def test_focus_without_template_is_empty():
    assert focus_statement.build("reset", {}, [], None) == ""


# ========================
# Intent translation
# ========================

def test_matching_rule_wins():
    config = minimal_config()

    result = intent_translation.translate(
        "levelUp", {"levelUpType": "people"}, config.translation_rules, config.fallback_translation)

    assert result.translation == "They want to lead people."
    assert result.coaching_focus == ("Give them a team to lead",)
    assert result.checkpoint_days == 45
    # Omitted fields are filled generically
    assert result.leader_ask == intent_translation.GENERIC_LEADER_ASK
    assert result.watch_outs == intent_translation.GENERIC_WATCH_OUTS


def test_non_matching_version_uses_fallback():
    config = minimal_config()

    result = intent_translation.translate(
        "levelUp", {"levelUpType": "scope"}, config.translation_rules, config.fallback_translation)

    assert result.translation == "They are exploring."
    assert result.leader_ask == "Help them test it."
    assert result.checkpoint_days == intent_translation.GENERIC_CHECKPOINT_DAYS


def test_rule_path_guard():
    config = minimal_config()

    result = intent_translation.translate(
        "thrive", {"levelUpType": "people"}, config.translation_rules, config.fallback_translation)

    assert result.translation == "They are exploring."


def test_to_translation_all_generic():
    result = intent_translation.to_translation({})

    assert result.pressure_test == intent_translation.GENERIC_PRESSURE_TEST
    assert result.success_criteria == intent_translation.GENERIC_SUCCESS_CRITERIA
    assert result.checkpoint_days == 30


def test_to_translation_invalid_days():
    assert intent_translation.to_translation({"checkpointDays": "soon"}).checkpoint_days == 30
    assert intent_translation.to_translation({"checkpointDays": 0}).checkpoint_days == 30
    assert intent_translation.to_translation({"checkpointDays": "14"}).checkpoint_days == 14


if __name__ == '__main__':
    print("\n" + "="*60)
    print("TESTING PLAN BUILDERS")
    print("="*60 + "\n")

    test_defaults_skip_unknown_and_truncate()
    test_defaults_for_path_without_suggestions()
    test_toggle_respects_max_pick()
    test_experiments_for_path()
    test_render_leaves_unknown_slots()
    test_focus_uses_descriptor_and_first_experiment()
    test_focus_falls_back_to_default_descriptor()
    test_focus_unrecognised_value_uses_default()
    test_focus_without_template_is_empty()
    test_matching_rule_wins()
    test_non_matching_version_uses_fallback()
    test_rule_path_guard()
    test_to_translation_all_generic()
    test_to_translation_invalid_days()

    print("\n" + "="*60)
    print("ALL PLAN BUILDER TESTS PASSED ✓")
    print("="*60 + "\n")
