"""
Integration tests for FlowManager (Functional Core)

Walks the bundled career_flow.json configuration through the command
interface: diagnostic, routing, refinement, plan and summaries.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from flow_fixtures import SAMPLE_CONFIG
from compass.commands import (
    AcceptRecommendation,
    ChoosePath,
    FinalizePlan,
    GoBack,
    NextStep,
    Phase,
    SelectOption,
    SelectSummaryTab,
    SessionState,
    StartSession,
    SubmitProfile,
    ToggleExperiment,
    UpdatePlan,
)
from compass.core.config_loader import load_config
from compass.core.flow_manager import FlowManager
from compass.results import IllegalCommand, StepResult

LEVEL_UP_ANSWERS = [
    ("bigger_remit",),
    ("decide", "craft"),
    ("clear",),
    ("medium",),
    ("ready",),
]

BREADTH_ANSWERS = [
    ("new_area",),
    ("connect", "curious"),
    ("unclear",),
    ("large",),
    ("soon",),
]


@pytest.fixture(scope="module")
def flow():
    return FlowManager(load_config(SAMPLE_CONFIG))


# ========================
# Helpers
# ========================

def answer(flow, result, option_ids):
    """Select option_ids on the current question and commit"""
    for option_id in option_ids:
        result = flow.handle(SelectOption(state=result.state, option_id=option_id))
        assert isinstance(result, StepResult), f"Selecting {option_id} failed: {result}"
    result = flow.handle(NextStep(state=result.state))
    assert isinstance(result, StepResult), f"Commit failed: {result}"
    return result


def start_diagnostic(flow, profile=None):
    result = flow.handle(StartSession())
    result = flow.handle(NextStep(state=result.state))
    return flow.handle(SubmitProfile(state=result.state, values=profile or {}))


def run_diagnostic(flow, answers):
    result = start_diagnostic(flow)
    for option_ids in answers:
        result = answer(flow, result, option_ids)
    return result


def run_to_plan(flow):
    result = run_diagnostic(flow, LEVEL_UP_ANSWERS)
    result = flow.handle(AcceptRecommendation(state=result.state))
    result = answer(flow, result, ("people",))
    return answer(flow, result, ("six_months",))


# ========================
# Session start and profile
# ========================

def test_rejects_raw_dict_config():
    with pytest.raises(TypeError):
        FlowManager({"paths": []})


def test_start_session(flow):
    result = flow.handle(StartSession())

    assert result.phase == "intro"
    assert result.view["startLabel"] == "Let's begin"
    assert result.state.session_id
    assert result.state.open_question.startswith("What would you recommend")


def test_profile_step_then_diagnostic(flow):
    result = flow.handle(StartSession())
    result = flow.handle(NextStep(state=result.state))
    assert result.phase == "profile"
    assert [f["id"] for f in result.view["fields"]] == ["name", "tenure"]

    result = flow.handle(SubmitProfile(
        state=result.state,
        values={"name": "Sam", "tenure": "not an option", "shoeSize": 9},
    ))

    assert result.phase == "diagnostic"
    assert result.state.profile == {"name": "Sam"}
    assert result.view["questionId"] == "d1_energy"
    assert result.view["index"] == 0
    assert result.view["total"] == 5


# ========================
# Diagnostic
# ========================

def test_command_does_not_mutate_input_state(flow):
    result = start_diagnostic(flow)
    before = result.state.copy()

    flow.handle(SelectOption(state=result.state, option_id="bigger_remit"))

    assert result.state == before


def test_next_without_selection_is_illegal(flow):
    result = start_diagnostic(flow)

    rejected = flow.handle(NextStep(state=result.state))

    assert isinstance(rejected, IllegalCommand)
    assert rejected.command_type == "NextStep"


def test_multi_choice_cap(flow):
    result = answer(flow, start_diagnostic(flow), ("bigger_remit",))
    for option_id in ("decide", "craft", "connect"):
        result = flow.handle(SelectOption(state=result.state, option_id=option_id))

    assert result.state.pending_selection == ("decide", "craft")
    selected = [o["id"] for o in result.view["options"] if o["selected"]]
    assert selected == ["decide", "craft"]


def test_recommendation_by_scores(flow):
    result = run_diagnostic(flow, LEVEL_UP_ANSWERS)

    assert result.phase == "recommendation"
    assert result.debug["pathScores"]["levelUp"] == 10
    assert result.debug["pathScores"]["thrive"] == 3
    assert result.debug["confidence"]["band"] == "strong"
    assert result.view["primaryPath"] == "levelUp"
    assert result.view["secondaryPath"] == "thrive"
    assert result.view["chosenBy"] == "recommendation"
    assert result.view["dominantSignal"] == "scope"
    assert result.compass["rows"][0]["pathId"] == "levelUp"
    assert result.compass["rows"][0]["percent"] == 100
    assert result.compass["rows"][1]["percent"] == 30


def test_recommendation_by_routing_rule(flow):
    result = run_diagnostic(flow, BREADTH_ANSWERS)

    assert result.debug["confidence"]["band"] == "early"
    assert result.view["primaryPath"] == "expandView"
    assert result.view["secondaryPath"] == "moveAcross"
    assert result.view["chosenBy"] == "routingRule"


def test_go_back_recomputes_prefix(flow):
    result = start_diagnostic(flow)
    result = answer(flow, result, LEVEL_UP_ANSWERS[0])
    result = answer(flow, result, LEVEL_UP_ANSWERS[1])

    result = flow.handle(GoBack(state=result.state))

    assert result.state.diagnostic_index == 1
    assert result.state.pending_selection == ("decide", "craft")
    fresh = answer(flow, start_diagnostic(flow), LEVEL_UP_ANSWERS[0])
    assert result.debug["pathScores"] == fresh.debug["pathScores"]
    assert result.debug["signals"] == fresh.debug["signals"]
    assert len(result.debug["decisionLog"]) == 1


def test_go_back_from_recommendation(flow):
    result = run_diagnostic(flow, LEVEL_UP_ANSWERS)

    result = flow.handle(GoBack(state=result.state))

    assert result.phase == "diagnostic"
    assert result.view["questionId"] == "d5_readiness"
    assert result.state.pending_selection == ("ready",)
    assert result.debug["pathScores"]["levelUp"] == 9


def test_go_back_at_intro_is_illegal(flow):
    result = flow.handle(StartSession())

    assert isinstance(flow.handle(GoBack(state=result.state)), IllegalCommand)


# ========================
# Refinement and path switching
# ========================

def test_refinement_builds_version_record(flow):
    result = run_to_plan(flow)

    assert result.phase == "plan"
    versions = result.debug["pathIntent"]["versionOfPath"]
    assert versions["levelUp"] == {"levelUpType": "people", "timing": {"horizon": "6m"}}
    # Refinement never changes path scores
    assert result.debug["pathScores"]["levelUp"] == 10


def test_refinement_back_rewinds_version(flow):
    result = run_diagnostic(flow, LEVEL_UP_ANSWERS)
    result = flow.handle(AcceptRecommendation(state=result.state))
    result = answer(flow, result, ("people",))
    assert result.debug["pathIntent"]["versionOfPath"]["levelUp"] == {"levelUpType": "people"}

    result = flow.handle(GoBack(state=result.state))

    assert result.view["questionId"] == "lu1_type"
    assert result.state.pending_selection == ("people",)
    assert result.debug["pathIntent"]["versionOfPath"]["levelUp"] == {}


def test_path_switch_preserves_versions(flow):
    result = run_to_plan(flow)

    result = flow.handle(ChoosePath(state=result.state, path_id="thrive"))
    assert result.phase == "refinement"
    assert result.state.secondary_path == "levelUp"
    assert result.state.chosen_by == "user"

    result = answer(flow, result, ("expertise",))
    assert result.phase == "plan"
    assert result.state.experiments_selected == ("th_skill_sprint", "th_feedback")
    versions = result.debug["pathIntent"]["versionOfPath"]
    assert versions["thrive"] == {"thriveFocus": "expertise"}
    assert versions["levelUp"]["levelUpType"] == "people"

    # Completed path goes straight back to the plan
    result = flow.handle(ChoosePath(state=result.state, path_id="levelUp"))
    assert result.phase == "plan"
    assert result.state.experiments_selected == ("lu_lead_small", "lu_shadow_manager")
    assert "leading people" in result.state.focus_statement


def test_refinement_log_follows_answer_order_across_paths(flow):
    result = run_diagnostic(flow, LEVEL_UP_ANSWERS)
    result = flow.handle(AcceptRecommendation(state=result.state))
    result = answer(flow, result, ("people",))
    result = flow.handle(ChoosePath(state=result.state, path_id="thrive"))
    result = answer(flow, result, ("expertise",))

    # levelUp still has its horizon question outstanding
    result = flow.handle(ChoosePath(state=result.state, path_id="levelUp"))
    assert result.phase == "refinement"
    assert result.view["questionId"] == "lu2_horizon"
    result = answer(flow, result, ("six_months",))
    result = flow.handle(FinalizePlan(state=result.state))

    refinement = [
        entry["optionId"] for entry in result.debug["decisionLog"]
        if entry["phase"] == "refinement"
    ]
    assert refinement == ["people", "expertise", "six_months"]
    assert result.state.refinement_order == [
        ("levelUp", "lu1_type"), ("thrive", "th1_focus"), ("levelUp", "lu2_horizon"),
    ]

    employee = result.state.summaries["employee"]
    assert employee.index("“Leading people”") < employee.index("“Deeper expertise”")
    assert employee.index("“Deeper expertise”") < employee.index("“Within six months”")
    print("✓ Refinement log is chronological across path switches")


def test_refinement_back_drops_rewound_answers_from_order(flow):
    result = run_diagnostic(flow, LEVEL_UP_ANSWERS)
    result = flow.handle(AcceptRecommendation(state=result.state))
    result = answer(flow, result, ("people",))
    assert result.state.refinement_order == [("levelUp", "lu1_type")]

    result = flow.handle(GoBack(state=result.state))
    assert result.state.refinement_order == []

    # Re-answering appends once
    result = answer(flow, result, ())
    assert result.state.refinement_order == [("levelUp", "lu1_type")]


def test_choose_unknown_path_is_illegal(flow):
    result = run_diagnostic(flow, LEVEL_UP_ANSWERS)

    rejected = flow.handle(ChoosePath(state=result.state, path_id="sabbatical"))

    assert isinstance(rejected, IllegalCommand)


# ========================
# Plan
# ========================

def test_plan_defaults_and_focus(flow):
    result = run_to_plan(flow)

    assert result.state.experiments_selected == ("lu_lead_small", "lu_shadow_manager")
    assert result.state.focus_statement == (
        "Over the next few months I want to grow toward leading people, "
        "starting with Lead a small initiative end to end."
    )


def test_experiment_cap_notice(flow):
    result = run_to_plan(flow)
    result = flow.handle(ToggleExperiment(state=result.state, experiment_id="lu_mentor"))
    assert len(result.state.experiments_selected) == 3

    result = flow.handle(ToggleExperiment(state=result.state, experiment_id="th_feedback"))

    assert len(result.state.experiments_selected) == 3
    assert result.notice == "You can pick up to 3 experiments."


def test_unknown_experiment_is_ignored(flow):
    result = run_to_plan(flow)

    toggled = flow.handle(ToggleExperiment(state=result.state, experiment_id="skydiving"))

    assert isinstance(toggled, StepResult)
    assert toggled.state.experiments_selected == result.state.experiments_selected
    assert toggled.notice


def test_focus_follows_first_experiment(flow):
    result = run_to_plan(flow)

    result = flow.handle(ToggleExperiment(state=result.state, experiment_id="lu_lead_small"))

    assert result.state.focus_statement.endswith("starting with Shadow a manager in key meetings.")


def test_custom_focus_survives_toggles(flow):
    result = run_to_plan(flow)
    result = flow.handle(UpdatePlan(state=result.state, focus_statement="  Lead the platform team.  "))
    result = flow.handle(ToggleExperiment(state=result.state, experiment_id="lu_mentor"))

    assert result.state.focus_statement == "Lead the platform team."

    result = flow.handle(UpdatePlan(state=result.state, focus_statement=""))
    assert result.state.focus_custom is False
    assert result.state.focus_statement.startswith("Over the next few months")


def test_toggle_outside_plan_is_illegal(flow):
    result = start_diagnostic(flow)

    assert isinstance(flow.handle(ToggleExperiment(state=result.state, experiment_id="lu_mentor")), IllegalCommand)


def test_finalize_requires_experiment(flow):
    result = run_to_plan(flow)
    for experiment_id in result.state.experiments_selected:
        result = flow.handle(ToggleExperiment(state=result.state, experiment_id=experiment_id))

    rejected = flow.handle(FinalizePlan(state=result.state))

    assert isinstance(rejected, IllegalCommand)
    assert rejected.reason == "Select at least one experiment"


# ========================
# Summaries
# ========================

def test_finalize_generates_both_summaries(flow):
    result = start_diagnostic(flow, profile={"name": "Sam", "tenure": "1-3 years"})
    for option_ids in LEVEL_UP_ANSWERS:
        result = answer(flow, result, option_ids)
    result = flow.handle(AcceptRecommendation(state=result.state))
    result = answer(flow, result, ("people",))
    result = answer(flow, result, ("six_months",))
    result = flow.handle(UpdatePlan(state=result.state, open_question="Can I lead the Q3 project?"))

    result = flow.handle(FinalizePlan(state=result.state))

    assert result.phase == "summary"
    employee = result.state.summaries["employee"]
    leader = result.state.summaries["leader"]

    assert employee.startswith("MY CAREER COMPASS\n\n")
    assert "• First name: Sam" in employee
    assert "Primary: Level Up" in employee
    assert "Secondary: Thrive in Role" in employee
    assert "Confidence: Strong" in employee
    assert "• You're looking for more responsibility and a bigger remit." in employee
    assert "• Lead a small initiative end to end (6-8 weeks)" in employee
    assert "• What kind of step up are you aiming for? → “Leading people”" in employee
    assert "Which kind of progress" not in employee
    assert "Can I lead the Q3 project?" in employee

    assert leader.startswith("PEOPLE LEADER COACHING BRIEF\n\n")
    assert "They want to grow into leading people" in leader
    assert "• Promoting on technical strength alone" in leader
    assert "Let's check in together in 45 days." in leader

    assert result.view["tab"] == "employee"
    assert result.view["text"] == employee


def test_summary_tabs(flow):
    result = flow.handle(FinalizePlan(state=run_to_plan(flow).state))

    leader_tab = flow.handle(SelectSummaryTab(state=result.state, tab="leader"))
    assert leader_tab.view["text"] == result.state.summaries["leader"]

    assert isinstance(flow.handle(SelectSummaryTab(state=result.state, tab="hr")), IllegalCommand)
    assert isinstance(flow.handle(NextStep(state=result.state)), IllegalCommand)


def test_summary_tab_before_finalize_is_illegal(flow):
    result = run_to_plan(flow)

    assert isinstance(flow.handle(SelectSummaryTab(state=result.state, tab="leader")), IllegalCommand)


def test_session_state_json_round_trip(flow):
    result = flow.handle(FinalizePlan(state=run_to_plan(flow).state))

    restored = SessionState.from_json(result.state.to_json())

    assert restored == result.state
    assert restored.phase == Phase.SUMMARY
