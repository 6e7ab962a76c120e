"""
Flow Manager - questionnaire orchestration (Functional Core)

Responsibilities:
- Dispatch commands to phase handlers
- Rebuild every derived value (signals, scores, confidence, decision log,
  version records) from the stored answers on every command
- Settle the primary path through the routing engine or respondent choice
- Prepare the plan (default experiments, focus statement)
- Generate both summaries on finalize

Design principles:
- Ephemeral per command (only the configuration is cached)
- State in, new state out: the incoming SessionState is never mutated
- Full recompute for both phases: going back in diagnostic or refinement
  shortens the counted answer prefix, nothing is undone incrementally
- Lifecycle violations are IllegalCommand results, not exceptions
- Ignored input (over-cap clicks, unknown ids) returns the unchanged state
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from compass.commands import (
    SUMMARY_TABS,
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
from compass.contracts import ChosenBy, ConfigDocument, Confidence, QuestionDef, SignalVector
from compass.core import focus_statement, routing_engine
from compass.core.accumulator import Answer, SignalAccumulator, recompute, toggle_selection
from compass.core.compass_view import build_compass
from compass.core.confidence_classifier import classify, rank_paths
from compass.core.decision_log import DecisionLog
from compass.core.experiment_selector import experiments_for_path, select_defaults, toggle_experiment
from compass.core.intent_translation import translate
from compass.core.path_intent_store import PathIntentStore
from compass.core.summary_generator import SummaryContext, SummaryGenerator
from compass.results import IllegalCommand, StepResult
from compass.utils.helpers import generate_session_id

logger = logging.getLogger(__name__)


@dataclass
class DerivedState:
    """Values recomputed from SessionState; never stored."""
    signals: SignalVector
    path_scores: Dict[str, float]
    decision_log: DecisionLog
    confidence: Confidence
    intent: PathIntentStore

    def to_json(self) -> Dict[str, Any]:
        return {
            "signals": self.signals.as_dict(),
            "pathScores": dict(self.path_scores),
            "confidence": self.confidence.to_json(),
            "decisionLog": self.decision_log.to_json(),
            "pathIntent": self.intent.to_json(),
        }


class FlowManager:
    """
    Orchestrates one respondent's questionnaire.

    Functional core design:
    - handle(command) transforms the command's state deterministically
    - No implicit state accumulation between commands
    """

    def __init__(self, config: ConfigDocument):
        """
        Args:
            config: Validated configuration (see config_loader.load_config)

        Raises:
            TypeError: If config is not a ConfigDocument
        """
        if not isinstance(config, ConfigDocument):
            raise TypeError("config must be a ConfigDocument")

        self.config = config
        self.summary_generator = SummaryGenerator(config)
        self._handlers = {
            StartSession: self._start,
            SubmitProfile: self._submit_profile,
            SelectOption: self._select_option,
            NextStep: self._next,
            GoBack: self._back,
            AcceptRecommendation: self._accept_recommendation,
            ChoosePath: self._choose_path,
            ToggleExperiment: self._toggle_experiment,
            UpdatePlan: self._update_plan,
            FinalizePlan: self._finalize,
            SelectSummaryTab: self._select_summary_tab,
        }

        logger.info("Flow Manager initialized (functional core)")

    # =========================================================================
    # Public API
    # =========================================================================

    def handle(self, command) -> StepResult | IllegalCommand:
        """
        Process one command.

        Args:
            command: Any command from compass.commands

        Returns:
            StepResult with the new state, or IllegalCommand

        Raises:
            TypeError: If command is not a known command type
        """
        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"Unknown command type: {type(command).__name__}")

        if isinstance(command, StartSession):
            return handler(command, None)

        state = command.state.copy()
        logger.debug(f"Handling {type(command).__name__} in phase {state.phase.value}")
        return handler(command, state)

    def rebuild(self, state: SessionState) -> DerivedState:
        """
        Recompute every derived value from the stored answers.

        Diagnostic answers before diagnostic_index are folded first (signals
        and scores), then each visited path's counted refinement answers in
        first-visit order (signals and version records, never scores).
        """
        diagnostic = recompute(self.config, self.diagnostic_prefix(state))
        confidence = classify(
            diagnostic.path_scores,
            self.config.confidence_bands,
            dict(self.config.confidence_labels),
        )

        log = DecisionLog(diagnostic.decision_log)
        intent = PathIntentStore()
        if state.primary_path:
            intent.set_paths(
                state.primary_path,
                state.secondary_path,
                ChosenBy(state.chosen_by) if state.chosen_by else ChosenBy.RECOMMENDATION,
            )

        accumulator = SignalAccumulator.seeded(diagnostic.signals, diagnostic.path_scores)
        counted = {}
        for path_id in state.refinement_answers:
            intent.ensure_version(path_id)
            counted[path_id] = {q.id: q for q in self._counted_refinement(state, path_id)}

        # Replay in commit order across paths, so the log stays chronological
        for path_id, question_id in state.refinement_order:
            question = counted.get(path_id, {}).get(question_id)
            option_ids = state.refinement_answers.get(path_id, {}).get(question_id)
            if question is None or not option_ids:
                continue
            log.extend(intent.apply_refinement_answer(
                path_id, question, Answer(question_id, option_ids), accumulator
            ))

        return DerivedState(
            signals=accumulator.freeze(),
            path_scores=diagnostic.path_scores,
            decision_log=log,
            confidence=confidence,
            intent=intent,
        )

    def diagnostic_prefix(self, state: SessionState) -> List[Answer]:
        """Committed diagnostic answers that currently count, in question order."""
        answers = []
        for question in self.config.diagnostic_questions[:state.diagnostic_index]:
            option_ids = state.diagnostic_answers.get(question.id)
            if option_ids:
                answers.append(Answer(question.id, option_ids))
        return answers

    def current_question(self, state: SessionState) -> Optional[QuestionDef]:
        if state.phase == Phase.DIAGNOSTIC:
            questions = self.config.diagnostic_questions
            index = state.diagnostic_index
        elif state.phase == Phase.REFINEMENT and state.primary_path:
            questions = self.config.refinement_questions(state.primary_path)
            index = state.refinement_index
        else:
            return None
        return questions[index] if index < len(questions) else None

    # =========================================================================
    # Handlers
    # =========================================================================

    def _start(self, command: StartSession, _state) -> StepResult:
        state = SessionState(
            session_id=generate_session_id(short=True),
            open_question=self.config.default_open_question,
        )
        logger.info(f"Started session {state.session_id}")
        return self._result(state)

    def _submit_profile(self, command: SubmitProfile, state: SessionState):
        if state.phase != Phase.PROFILE:
            return self._illegal(command, f"Profile cannot be submitted in phase '{state.phase.value}'")

        fields = {f.id: f for f in self.config.profile_fields}
        for field_id, value in command.values.items():
            profile_field = fields.get(field_id)
            if profile_field is None:
                logger.warning(f"Ignoring unknown profile field '{field_id}'")
                continue
            if profile_field.type == "select" and value and value not in profile_field.options:
                logger.warning(f"Ignoring invalid value {value!r} for profile field '{field_id}'")
                continue
            state.profile[field_id] = value

        return self._enter_diagnostic(state)

    def _select_option(self, command: SelectOption, state: SessionState):
        question = self.current_question(state)
        if question is None:
            return self._illegal(command, f"No question to answer in phase '{state.phase.value}'")

        state.pending_selection = toggle_selection(question, state.pending_selection, command.option_id)
        return self._result(state)

    def _next(self, command: NextStep, state: SessionState):
        if state.phase == Phase.INTRO:
            if self.config.profile_enabled:
                state.phase = Phase.PROFILE
                return self._result(state)
            return self._enter_diagnostic(state)

        if state.phase == Phase.PROFILE:
            return self._enter_diagnostic(state)

        if state.phase == Phase.DIAGNOSTIC:
            return self._commit_diagnostic(command, state)

        if state.phase == Phase.RECOMMENDATION:
            return self._accept_recommendation(command, state)

        if state.phase == Phase.REFINEMENT:
            return self._commit_refinement(command, state)

        if state.phase == Phase.PLAN:
            return self._finalize(command, state)

        return self._illegal(command, "Questionnaire is complete")

    def _back(self, command: GoBack, state: SessionState):
        phase = state.phase

        if phase == Phase.INTRO:
            return self._illegal(command, "Already at the start")

        if phase == Phase.PROFILE:
            state.phase = Phase.INTRO
            return self._result(state)

        if phase == Phase.DIAGNOSTIC:
            if state.diagnostic_index > 0:
                self._position_diagnostic(state, state.diagnostic_index - 1)
            else:
                state.pending_selection = ()
                state.phase = Phase.PROFILE if self.config.profile_enabled else Phase.INTRO
            return self._result(state)

        if phase == Phase.RECOMMENDATION:
            total = len(self.config.diagnostic_questions)
            if total == 0:
                state.phase = Phase.PROFILE if self.config.profile_enabled else Phase.INTRO
                return self._result(state)
            state.phase = Phase.DIAGNOSTIC
            self._position_diagnostic(state, total - 1)
            return self._result(state)

        if phase == Phase.REFINEMENT:
            if state.refinement_index > 0:
                self._position_refinement(state, state.refinement_index - 1)
            else:
                state.pending_selection = ()
                state.phase = Phase.RECOMMENDATION
            return self._result(state)

        if phase == Phase.PLAN:
            total = len(self.config.refinement_questions(state.primary_path))
            if total == 0:
                state.phase = Phase.RECOMMENDATION
                return self._result(state)
            state.phase = Phase.REFINEMENT
            self._position_refinement(state, total - 1)
            return self._result(state)

        state.phase = Phase.PLAN
        return self._result(state)

    def _accept_recommendation(self, command, state: SessionState):
        if state.phase != Phase.RECOMMENDATION or not state.recommended_primary:
            return self._illegal(command, "No recommendation to accept")

        state.primary_path = state.recommended_primary
        state.secondary_path = state.recommended_secondary
        state.chosen_by = state.recommended_by
        return self._enter_refinement(state)

    def _choose_path(self, command: ChoosePath, state: SessionState):
        if state.phase not in (Phase.RECOMMENDATION, Phase.REFINEMENT, Phase.PLAN):
            return self._illegal(command, f"Path cannot be changed in phase '{state.phase.value}'")
        if self.config.get_path(command.path_id) is None:
            return self._illegal(command, f"Unknown path '{command.path_id}'")

        secondary = command.secondary_path
        if secondary is not None and self.config.get_path(secondary) is None:
            return self._illegal(command, f"Unknown path '{secondary}'")
        if secondary is None:
            if command.path_id != state.recommended_primary:
                secondary = state.recommended_primary
            else:
                secondary = state.recommended_secondary

        state.primary_path = command.path_id
        state.secondary_path = secondary
        state.chosen_by = ChosenBy.USER.value
        state.pending_selection = ()
        logger.info(f"Respondent chose path {command.path_id}")
        return self._enter_refinement(state)

    def _toggle_experiment(self, command: ToggleExperiment, state: SessionState):
        if state.phase != Phase.PLAN:
            return self._illegal(command, "Experiments can only be changed on the plan step")

        if self.config.get_experiment(command.experiment_id) is None:
            logger.warning(f"Ignoring unknown experiment '{command.experiment_id}'")
            return self._result(state, notice="That experiment is not available.")

        before = state.experiments_selected
        state.experiments_selected = toggle_experiment(
            before, command.experiment_id, self.config.selection_rules.max_pick_count
        )
        notice = ""
        if state.experiments_selected == before:
            notice = f"You can pick up to {self.config.selection_rules.max_pick_count} experiments."
        self._refresh_focus(state)
        return self._result(state, notice=notice)

    def _update_plan(self, command: UpdatePlan, state: SessionState):
        if state.phase not in (Phase.PLAN, Phase.SUMMARY):
            return self._illegal(command, "Plan can only be edited on the plan step")

        if command.focus_statement is not None:
            text = command.focus_statement.strip()
            state.focus_custom = bool(text)
            state.focus_statement = text
            self._refresh_focus(state)

        if command.open_question is not None:
            state.open_question = command.open_question.strip() or self.config.default_open_question

        return self._result(state)

    def _finalize(self, command, state: SessionState):
        if state.phase not in (Phase.PLAN, Phase.SUMMARY):
            return self._illegal(command, f"Plan cannot be finalized in phase '{state.phase.value}'")
        if not state.primary_path:
            return self._illegal(command, "No primary path selected")
        if not state.experiments_selected:
            return self._illegal(command, "Select at least one experiment")

        self._refresh_focus(state)
        derived = self.rebuild(state)
        version = derived.intent.get_version(state.primary_path)

        context = SummaryContext(
            signals=derived.signals,
            confidence=derived.confidence,
            decision_log=derived.decision_log,
            primary_path=state.primary_path,
            secondary_path=state.secondary_path,
            experiments=self._selected_experiments(state),
            focus_statement=state.focus_statement,
            open_question=state.open_question or self.config.default_open_question,
            translation=translate(
                state.primary_path, version,
                self.config.translation_rules, self.config.fallback_translation,
            ),
            profile=tuple(
                (f.id, state.profile.get(f.id)) for f in self.config.profile_fields if f.id in state.profile
            ),
        )
        state.summaries = self.summary_generator.generate(context).to_json()
        state.phase = Phase.SUMMARY
        logger.info(f"Session {state.session_id} finalized on path {state.primary_path}")
        return self._result(state, derived=derived)

    def _select_summary_tab(self, command: SelectSummaryTab, state: SessionState):
        if state.phase != Phase.SUMMARY:
            return self._illegal(command, "Summaries have not been generated")
        if command.tab not in SUMMARY_TABS:
            return self._illegal(command, f"Unknown summary tab '{command.tab}'")
        state.summary_tab = command.tab
        return self._result(state)

    # =========================================================================
    # Transitions
    # =========================================================================

    def _enter_diagnostic(self, state: SessionState) -> StepResult:
        state.phase = Phase.DIAGNOSTIC
        if not self.config.diagnostic_questions:
            return self._complete_diagnostic(state)
        self._position_diagnostic(state, 0)
        return self._result(state)

    def _commit_diagnostic(self, command, state: SessionState):
        question = self.current_question(state)
        if question is None:
            return self._complete_diagnostic(state)
        if not state.pending_selection:
            return self._illegal(command, "Select an option to continue")

        state.diagnostic_answers[question.id] = tuple(state.pending_selection)
        next_index = state.diagnostic_index + 1
        if next_index >= len(self.config.diagnostic_questions):
            state.diagnostic_index = next_index
            state.pending_selection = ()
            return self._complete_diagnostic(state)

        self._position_diagnostic(state, next_index)
        return self._result(state)

    def _complete_diagnostic(self, state: SessionState) -> StepResult:
        derived = self.rebuild(state)
        # Routing reads diagnostic signals only, never earlier refinement visits
        diagnostic = recompute(self.config, self.diagnostic_prefix(state))
        decision = routing_engine.decide(diagnostic.signals, derived.confidence, self.config.routing_rules)

        state.recommended_primary = decision.primary_path
        state.recommended_secondary = decision.secondary_path
        state.recommended_by = decision.chosen_by.value
        state.primary_path = decision.primary_path
        state.secondary_path = decision.secondary_path
        state.chosen_by = decision.chosen_by.value
        state.phase = Phase.RECOMMENDATION

        logger.info(
            f"Diagnostic complete: primary={decision.primary_path} "
            f"secondary={decision.secondary_path} band={derived.confidence.band}"
        )
        return self._result(state)

    def _enter_refinement(self, state: SessionState) -> StepResult:
        path_id = state.primary_path
        state.refinement_answers.setdefault(path_id, {})
        progress = state.refinement_progress.setdefault(path_id, 0)

        if progress >= len(self.config.refinement_questions(path_id)):
            return self._enter_plan(state)

        state.phase = Phase.REFINEMENT
        self._position_refinement(state, progress)
        return self._result(state)

    def _commit_refinement(self, command, state: SessionState):
        question = self.current_question(state)
        if question is None:
            return self._enter_plan(state)
        if not state.pending_selection:
            return self._illegal(command, "Select an option to continue")

        path_id = state.primary_path
        state.refinement_answers[path_id][question.id] = tuple(state.pending_selection)
        pair = (path_id, question.id)
        state.refinement_order = [p for p in state.refinement_order if p != pair] + [pair]
        next_index = state.refinement_index + 1
        if next_index >= len(self.config.refinement_questions(path_id)):
            state.refinement_progress[path_id] = next_index
            state.pending_selection = ()
            return self._enter_plan(state)

        self._position_refinement(state, next_index)
        return self._result(state)

    def _enter_plan(self, state: SessionState) -> StepResult:
        state.phase = Phase.PLAN
        state.pending_selection = ()
        if state.plan_path != state.primary_path:
            defaults = select_defaults(
                state.primary_path, self.config.experiments, self.config.selection_rules
            )
            state.experiments_selected = tuple(e.id for e in defaults)
            state.plan_path = state.primary_path
            state.focus_custom = False
        self._refresh_focus(state)
        return self._result(state)

    def _position_diagnostic(self, state: SessionState, index: int) -> None:
        state.diagnostic_index = index
        question = self.config.diagnostic_questions[index]
        state.pending_selection = tuple(state.diagnostic_answers.get(question.id, ()))

    def _position_refinement(self, state: SessionState, index: int) -> None:
        path_id = state.primary_path
        state.refinement_progress[path_id] = index
        questions = self.config.refinement_questions(path_id)
        uncounted = {q.id for q in questions[index:]}
        state.refinement_order = [
            (p, q) for p, q in state.refinement_order if not (p == path_id and q in uncounted)
        ]
        question = questions[index]
        state.pending_selection = tuple(state.refinement_answers.get(path_id, {}).get(question.id, ()))

    def _refresh_focus(self, state: SessionState) -> None:
        if state.focus_custom or not state.primary_path:
            return
        derived = self.rebuild(state)
        state.focus_statement = focus_statement.build(
            state.primary_path,
            derived.intent.get_version(state.primary_path),
            self._selected_experiments(state),
            self.config.focus_template(state.primary_path),
        )

    # =========================================================================
    # Views
    # =========================================================================

    def _counted_refinement(self, state: SessionState, path_id: str) -> Tuple[QuestionDef, ...]:
        questions = self.config.refinement_questions(path_id)
        return questions[:state.refinement_progress.get(path_id, 0)]

    def _selected_experiments(self, state: SessionState):
        experiments = []
        for experiment_id in state.experiments_selected:
            experiment = self.config.get_experiment(experiment_id)
            if experiment is not None:
                experiments.append(experiment)
        return tuple(experiments)

    def _illegal(self, command, reason: str) -> IllegalCommand:
        logger.warning(f"Rejected {type(command).__name__}: {reason}")
        return IllegalCommand(reason=reason, command_type=type(command).__name__)

    def _result(self, state: SessionState, notice: str = "",
                derived: Optional[DerivedState] = None) -> StepResult:
        derived = derived or self.rebuild(state)
        compass = build_compass(
            self.config,
            derived.path_scores,
            derived.signals,
            derived.confidence,
            state.phase.value,
            state.diagnostic_index,
            state.primary_path,
            state.refinement_index,
        )
        return StepResult(
            state=state,
            view=self._view(state, derived),
            compass=compass,
            debug=derived.to_json(),
            notice=notice,
        )

    def _view(self, state: SessionState, derived: DerivedState) -> Dict[str, Any]:
        buttons = self.config.ui_strings.get("buttons", {})

        if state.phase == Phase.INTRO:
            return {"screen": "intro", "startLabel": buttons.get("start", "Start")}

        if state.phase == Phase.PROFILE:
            return {
                "screen": "profile",
                "fields": [
                    {"id": f.id, "label": f.label, "type": f.type, "options": list(f.options),
                     "value": state.profile.get(f.id)}
                    for f in self.config.profile_fields
                ],
            }

        if state.phase in (Phase.DIAGNOSTIC, Phase.REFINEMENT):
            return self._question_view(state)

        if state.phase == Phase.RECOMMENDATION:
            return {
                "screen": "recommendation",
                "primaryPath": state.primary_path,
                "secondaryPath": state.secondary_path,
                "chosenBy": state.chosen_by,
                "dominantSignal": routing_engine.dominant_signal(derived.signals),
                "ranked": [
                    {"pathId": path_id, "label": self.config.get_path(path_id).label, "score": score}
                    for path_id, score in rank_paths(derived.path_scores)
                ],
            }

        if state.phase == Phase.PLAN:
            return {
                "screen": "plan",
                "primaryPath": state.primary_path,
                "maxPickCount": self.config.selection_rules.max_pick_count,
                "experiments": [
                    {"id": e.id, "label": e.label, "timeframe": e.timeframe,
                     "selected": e.id in state.experiments_selected}
                    for e in experiments_for_path(state.primary_path, self.config.experiments)
                ],
                "experimentsSelected": list(state.experiments_selected),
                "focusStatement": state.focus_statement,
                "openQuestion": state.open_question,
            }

        summaries = state.summaries or {}
        return {
            "screen": "summary",
            "tab": state.summary_tab,
            "text": summaries.get(state.summary_tab, ""),
            "summaries": dict(summaries),
        }

    def _question_view(self, state: SessionState) -> Dict[str, Any]:
        question = self.current_question(state)
        if state.phase == Phase.DIAGNOSTIC:
            index, total = state.diagnostic_index, len(self.config.diagnostic_questions)
        else:
            index, total = state.refinement_index, len(self.config.refinement_questions(state.primary_path))

        return {
            "screen": state.phase.value,
            "pathId": state.primary_path if state.phase == Phase.REFINEMENT else None,
            "questionId": question.id,
            "prompt": question.prompt,
            "help": question.help_text,
            "type": question.type.value,
            "maxSelect": question.max_select,
            "index": index,
            "total": total,
            "options": [
                {"id": o.id, "label": o.label, "selected": o.id in state.pending_selection}
                for o in question.options
            ],
            "canContinue": bool(state.pending_selection),
        }
