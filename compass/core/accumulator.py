"""
Signal/Score Accumulator - pure recompute of signals and path scores

Responsibilities:
- Fold an ordered answer list into a SignalVector and a path score table
- Emit one DecisionLogEntry per applied option
- Enforce the per-question selection cap (interactive toggling and replay)

Design principles:
- Stateless: everything comes from (config, answers)
- Deterministic: same ordered answers, same output
- Never patched incrementally: going back means recomputing a shorter prefix
- Forgiving: unknown option ids and over-cap selections are ignored, not raised
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from compass.contracts import (
    SCALES,
    SIGNALS,
    AnswerPhase,
    ConfigDocument,
    DecisionLogEntry,
    OptionDef,
    QuestionDef,
    SignalVector,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Answer:
    """A committed answer: the question and the option ids the respondent chose."""
    question_id: str
    option_ids: Tuple[str, ...]

    def to_json(self) -> Dict[str, Any]:
        return {"questionId": self.question_id, "optionIds": list(self.option_ids)}

    @staticmethod
    def from_json(data: Dict[str, Any]) -> "Answer":
        return Answer(question_id=data["questionId"], option_ids=tuple(data.get("optionIds", ())))


@dataclass(frozen=True)
class RecomputeResult:
    signals: SignalVector
    path_scores: Dict[str, float]
    decision_log: Tuple[DecisionLogEntry, ...]


class SignalAccumulator:
    """
    Mutable running totals used inside a single recompute.

    Instances never outlive the recompute that created them; callers only
    ever see the frozen SignalVector produced by freeze().
    """

    def __init__(self, path_ids: Iterable[str]):
        self.totals: Dict[str, float] = {name: 0 for name in SIGNALS}
        self.scales: Dict[str, Any] = {name: None for name in SCALES}
        self.path_scores: Dict[str, float] = {path_id: 0 for path_id in path_ids}

    @classmethod
    def seeded(cls, signals: SignalVector, path_scores: Dict[str, float]) -> "SignalAccumulator":
        """Continue folding on top of an earlier recompute (refinement replay)."""
        accumulator = cls(path_scores.keys())
        accumulator.totals.update(dict(signals.totals))
        accumulator.scales.update(dict(signals.scales))
        accumulator.path_scores.update(path_scores)
        return accumulator

    def add_signals(self, option: OptionDef) -> None:
        for name, delta in option.signals:
            self.totals[name] += delta
        for name, value in option.scales:
            if value is not None:
                self.scales[name] = value

    def add_path_scores(self, option: OptionDef) -> None:
        for path_id, delta in option.path_scores:
            self.path_scores[path_id] = self.path_scores.get(path_id, 0) + delta

    def freeze(self) -> SignalVector:
        return SignalVector(
            totals=tuple((name, self.totals[name]) for name in SIGNALS),
            scales=tuple((name, self.scales[name]) for name in SCALES),
        )


def resolve_options(question: QuestionDef, option_ids: Sequence[str]) -> List[OptionDef]:
    """
    Resolve chosen option ids against a question.

    Options come back in the question's presentation order, duplicates and
    unknown ids dropped, truncated to the question's selection cap.
    """
    wanted = set(option_ids)
    unknown = wanted - {o.id for o in question.options}
    if unknown:
        logger.warning(f"Question '{question.id}': ignoring unknown options {sorted(unknown)}")

    chosen = [o for o in question.options if o.id in wanted]
    if len(chosen) > question.max_select:
        logger.warning(
            f"Question '{question.id}': {len(chosen)} options over cap {question.max_select}, truncating"
        )
        # Keep the earliest-selected ids, not the earliest in presentation order
        keep = []
        for option_id in option_ids:
            if option_id in wanted and option_id not in keep:
                keep.append(option_id)
        keep = set(keep[:question.max_select])
        chosen = [o for o in chosen if o.id in keep]
    return chosen


def toggle_selection(question: QuestionDef, selection: Sequence[str], option_id: str) -> Tuple[str, ...]:
    """
    Apply one click to the current (uncommitted) selection.

    Single-choice: the clicked option replaces the selection.
    Multi-choice: a selected option is removed; an unselected option is
    added only while below max_select, otherwise the click is a no-op.

    Returns:
        New selection tuple (the old one if nothing changed)
    """
    current = tuple(selection)
    if question.get_option(option_id) is None:
        logger.warning(f"Question '{question.id}': unknown option '{option_id}' ignored")
        return current

    if not question.is_multi:
        return (option_id,)

    if option_id in current:
        return tuple(x for x in current if x != option_id)

    if len(current) >= question.max_select:
        logger.debug(f"Question '{question.id}': selection cap {question.max_select} reached")
        return current

    return current + (option_id,)


def apply_answer(
    accumulator: SignalAccumulator,
    question: QuestionDef,
    answer: Answer,
    phase: AnswerPhase,
    path_id: Optional[str] = None,
    score_paths: bool = True,
) -> List[DecisionLogEntry]:
    """
    Fold one answer into the accumulator.

    Args:
        accumulator: Running totals for the current recompute
        question: Question being answered
        answer: Chosen option ids
        phase: Phase recorded on the log entries
        path_id: Path the refinement answer belongs to
        score_paths: False for refinement answers (signals only, never scores)

    Returns:
        One DecisionLogEntry per applied option
    """
    entries = []
    for option in resolve_options(question, answer.option_ids):
        accumulator.add_signals(option)
        if score_paths:
            accumulator.add_path_scores(option)

        entries.append(DecisionLogEntry(
            phase=phase,
            path_id=path_id,
            question_id=question.id,
            option_id=option.id,
            prompt=question.prompt,
            answer_label=option.label,
            signal_deltas=option.signals + tuple((k, v) for k, v in option.scales),
            score_deltas=option.path_scores if score_paths else (),
            sets=option.sets,
        ))
    return entries


def recompute(config: ConfigDocument, ordered_answers: Sequence[Answer]) -> RecomputeResult:
    """
    Rebuild signals, path scores and the diagnostic decision log from scratch.

    Safe to call with any prefix of the answer list; calling it twice with
    the same input gives equal results.

    Args:
        config: Loaded configuration
        ordered_answers: Diagnostic answers in the order they were given

    Returns:
        RecomputeResult(signals, path_scores, decision_log)
    """
    questions = {q.id: q for q in config.diagnostic_questions}
    accumulator = SignalAccumulator(config.path_ids)
    log: List[DecisionLogEntry] = []

    for answer in ordered_answers:
        question = questions.get(answer.question_id)
        if question is None:
            logger.warning(f"Skipping answer to unknown diagnostic question '{answer.question_id}'")
            continue
        log.extend(apply_answer(accumulator, question, answer, AnswerPhase.DIAGNOSTIC))

    logger.debug(f"Recomputed {len(ordered_answers)} answers into {len(log)} log entries")

    return RecomputeResult(
        signals=accumulator.freeze(),
        path_scores=dict(accumulator.path_scores),
        decision_log=tuple(log),
    )
