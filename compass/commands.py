"""
Command types for FlowManager control flow.

Commands are the ONLY public interface to FlowManager.
Every command except StartSession carries the session state it applies to;
FlowManager never mutates that state, it returns a new one in the result.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Phase(str, Enum):
    """
    Questionnaire phases, in forward order.

    INTRO: Welcome screen, nothing answered
    PROFILE: Optional profile fields (only when enabled in config)
    DIAGNOSTIC: Diagnostic questions, scores recomputed on every change
    RECOMMENDATION: Routing settled, respondent can accept or switch
    REFINEMENT: Path-specific questions building the version record
    PLAN: Experiment selection, focus statement, open question
    SUMMARY: Both documents generated
    """
    INTRO = "intro"
    PROFILE = "profile"
    DIAGNOSTIC = "diagnostic"
    RECOMMENDATION = "recommendation"
    REFINEMENT = "refinement"
    PLAN = "plan"
    SUMMARY = "summary"


SUMMARY_TABS = ("employee", "leader")


@dataclass
class SessionState:
    """
    Everything the respondent has decided, and nothing derived.

    Signals, scores, confidence, the decision log and version records are
    always recomputed from these answers by FlowManager.

    Answer storage:
    - diagnostic_answers keeps every committed answer keyed by question id,
      but only questions before diagnostic_index count (going back truncates
      the counted prefix without forgetting what was selected)
    - refinement_answers / refinement_progress do the same per path, so a
      path's answers survive switching away and back
    - refinement_order lists committed (path id, question id) pairs across
      all paths in the order they were answered; rewinding a path drops its
      uncounted pairs
    """
    phase: Phase = Phase.INTRO
    profile: Dict[str, Any] = field(default_factory=dict)
    diagnostic_index: int = 0
    diagnostic_answers: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    pending_selection: Tuple[str, ...] = ()
    refinement_answers: Dict[str, Dict[str, Tuple[str, ...]]] = field(default_factory=dict)
    refinement_progress: Dict[str, int] = field(default_factory=dict)
    refinement_order: List[Tuple[str, str]] = field(default_factory=list)
    primary_path: Optional[str] = None
    secondary_path: Optional[str] = None
    chosen_by: Optional[str] = None
    recommended_primary: Optional[str] = None
    recommended_secondary: Optional[str] = None
    recommended_by: Optional[str] = None
    plan_path: Optional[str] = None
    experiments_selected: Tuple[str, ...] = ()
    focus_statement: str = ""
    focus_custom: bool = False
    open_question: str = ""
    summaries: Optional[Dict[str, str]] = None
    summary_tab: str = "employee"
    session_id: str = ""

    @property
    def refinement_index(self) -> int:
        if self.primary_path is None:
            return 0
        return self.refinement_progress.get(self.primary_path, 0)

    def copy(self) -> "SessionState":
        return copy.deepcopy(self)

    def to_json(self) -> Dict[str, Any]:
        """Serialize to a JSON-safe dict (deep copy)."""
        return {
            "sessionId": self.session_id,
            "phase": self.phase.value,
            "profile": copy.deepcopy(self.profile),
            "diagnosticIndex": self.diagnostic_index,
            "diagnosticAnswers": {k: list(v) for k, v in self.diagnostic_answers.items()},
            "pendingSelection": list(self.pending_selection),
            "refinementAnswers": {
                path_id: {k: list(v) for k, v in answers.items()}
                for path_id, answers in self.refinement_answers.items()
            },
            "refinementProgress": dict(self.refinement_progress),
            "refinementOrder": [list(pair) for pair in self.refinement_order],
            "primaryPath": self.primary_path,
            "secondaryPath": self.secondary_path,
            "chosenBy": self.chosen_by,
            "recommendedPrimary": self.recommended_primary,
            "recommendedSecondary": self.recommended_secondary,
            "recommendedBy": self.recommended_by,
            "planPath": self.plan_path,
            "experimentsSelected": list(self.experiments_selected),
            "focusStatement": self.focus_statement,
            "focusCustom": self.focus_custom,
            "openQuestion": self.open_question,
            "summaries": dict(self.summaries) if self.summaries else None,
            "summaryTab": self.summary_tab,
        }

    @staticmethod
    def from_json(data: Dict[str, Any]) -> "SessionState":
        """
        Deserialize from a dict produced by to_json().

        Raises:
            ValueError: If the phase value is unknown
        """
        return SessionState(
            session_id=data.get("sessionId", ""),
            phase=Phase(data.get("phase", Phase.INTRO.value)),
            profile=copy.deepcopy(data.get("profile", {})),
            diagnostic_index=int(data.get("diagnosticIndex", 0)),
            diagnostic_answers={k: tuple(v) for k, v in data.get("diagnosticAnswers", {}).items()},
            pending_selection=tuple(data.get("pendingSelection", ())),
            refinement_answers={
                path_id: {k: tuple(v) for k, v in answers.items()}
                for path_id, answers in data.get("refinementAnswers", {}).items()
            },
            refinement_progress={k: int(v) for k, v in data.get("refinementProgress", {}).items()},
            refinement_order=[tuple(pair) for pair in data.get("refinementOrder", [])],
            primary_path=data.get("primaryPath"),
            secondary_path=data.get("secondaryPath"),
            chosen_by=data.get("chosenBy"),
            recommended_primary=data.get("recommendedPrimary"),
            recommended_secondary=data.get("recommendedSecondary"),
            recommended_by=data.get("recommendedBy"),
            plan_path=data.get("planPath"),
            experiments_selected=tuple(data.get("experimentsSelected", ())),
            focus_statement=data.get("focusStatement", ""),
            focus_custom=bool(data.get("focusCustom", False)),
            open_question=data.get("openQuestion", ""),
            summaries=data.get("summaries"),
            summary_tab=data.get("summaryTab", "employee"),
        )


# Command types

@dataclass(frozen=True)
class StartSession:
    """
    Begin a new questionnaire.

    No state parameter - FlowManager creates the initial state.
    Returns: StepResult positioned on the profile step or first question.
    """
    pass


@dataclass(frozen=True)
class SubmitProfile:
    """Store profile values and move on to the diagnostic."""
    state: SessionState
    values: Dict[str, Any]


@dataclass(frozen=True)
class SelectOption:
    """
    Toggle an option on the current question (not yet committed).

    Over-cap multi-choice clicks and unknown option ids are no-ops.
    """
    state: SessionState
    option_id: str


@dataclass(frozen=True)
class NextStep:
    """Commit the current selection and advance."""
    state: SessionState


@dataclass(frozen=True)
class GoBack:
    """Step back one question or screen; scores are recomputed on the shorter prefix."""
    state: SessionState


@dataclass(frozen=True)
class AcceptRecommendation:
    """Keep the routed primary/secondary path and start refinement."""
    state: SessionState


@dataclass(frozen=True)
class ChoosePath:
    """
    Respondent override of the primary path.

    Allowed from the recommendation, refinement and plan screens. Version
    data for previously visited paths is kept.
    """
    state: SessionState
    path_id: str
    secondary_path: Optional[str] = None


@dataclass(frozen=True)
class ToggleExperiment:
    state: SessionState
    experiment_id: str


@dataclass(frozen=True)
class UpdatePlan:
    """
    Edit free-text plan fields. None leaves a field unchanged; an empty
    focus statement returns it to the generated one.
    """
    state: SessionState
    focus_statement: Optional[str] = None
    open_question: Optional[str] = None


@dataclass(frozen=True)
class FinalizePlan:
    """
    Generate both summaries from scratch.

    Only valid in the plan (or summary) phase with at least one experiment.
    Returns: StepResult in the summary phase.
    """
    state: SessionState


@dataclass(frozen=True)
class SelectSummaryTab:
    state: SessionState
    tab: str


# Command union type for type hints
Command = (StartSession | SubmitProfile | SelectOption | NextStep | GoBack | AcceptRecommendation
           | ChoosePath | ToggleExperiment | UpdatePlan | FinalizePlan | SelectSummaryTab)
