"""
Result types returned by FlowManager.handle()

These are the ONLY return types from the command handler.
"""

from dataclasses import dataclass
from typing import Any, Dict

from compass.commands import SessionState


@dataclass(frozen=True)
class StepResult:
    """
    Successful command result.

    Attributes:
        state: New session state (pass to the next command)
        view: What the rendering layer should show for the current phase
            (question and options, recommendation, plan, or summaries)
        compass: Live read-back: top two paths, confidence, what the
            system is hearing, progress text
        debug: Derived engine state (signals, scores, decision log, versions)
        notice: Optional non-fatal message for the respondent
    """
    state: SessionState
    view: Dict[str, Any]
    compass: Dict[str, Any]
    debug: Dict[str, Any]
    notice: str = ""

    @property
    def phase(self) -> str:
        return self.state.phase.value


@dataclass(frozen=True)
class IllegalCommand:
    """
    Command rejected by FlowManager (invalid lifecycle transition).

    Examples:
    - NextStep with nothing selected
    - ToggleExperiment outside the plan phase
    - FinalizePlan with no experiments selected

    Attributes:
        reason: Human-readable explanation
        command_type: Name of rejected command type
    """
    reason: str
    command_type: str
