"""
Semantic contracts for the career compass questionnaire.

This module defines the immutable data structures shared between modules:
the typed view of the configuration document and the records the engine
computes from answers. These are NOT validators - parsing and integrity
checks live in compass.core.config_loader.

Design principles:
- Frozen dataclasses (immutable after creation)
- Tuples instead of lists, so a loaded configuration cannot be mutated
- No dependencies on other modules
- Definition layer only (no enforcement)

Contents:
- Signal vocabulary constants (SIGNALS, CORE_SIGNALS, SCALES)
- Configuration records: PathDef, OptionDef, QuestionDef, ConfidenceBand,
  RoutingRule, ExperimentDef, SelectionRules, WhyEvidenceConfig,
  TranslationRule, FocusTemplate, SummaryLabels, ProfileField, ConfigDocument
- Engine records: SignalVector, DecisionLogEntry, Confidence,
  RoutingDecision, IntentTranslation

Usage:
    from compass.contracts import ConfigDocument, QuestionDef, Confidence
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


# Additive signals, in the order they are displayed and tie-broken
SIGNALS: Tuple[str, ...] = (
    "depth", "scope", "breadth", "recalibration",
    "execution", "decisionMaking", "people", "learning",
)

# The four signals that decide the dominant signal and the why-evidence
CORE_SIGNALS: Tuple[str, ...] = ("depth", "scope", "breadth", "recalibration")

# Last-write-wins observations, never summed
SCALES: Tuple[str, ...] = ("ambiguity", "change", "readiness")

# Routing rules only fire at this phase guard
PHASE_DIAGNOSTIC_COMPLETE = "diagnosticComplete"


class QuestionType(str, Enum):
    SINGLE = "single"
    MULTI = "multi"


class AnswerPhase(str, Enum):
    """Phase a decision log entry was recorded in."""
    DIAGNOSTIC = "diagnostic"
    REFINEMENT = "refinement"


class ChosenBy(str, Enum):
    """
    How the primary path was settled.

    ROUTING_RULE: an ordered override rule matched at diagnostic completion
    RECOMMENDATION: no rule matched, top score / runner-up were used
    USER: the respondent picked a path explicitly
    """
    ROUTING_RULE = "routingRule"
    RECOMMENDATION = "recommendation"
    USER = "user"


# =============================================================================
# Configuration records
# =============================================================================

@dataclass(frozen=True)
class PathDef:
    """A career direction the questionnaire can recommend."""
    id: str
    label: str
    short: str = ""


@dataclass(frozen=True)
class OptionDef:
    """
    One answer choice of a question.

    Attributes:
        id: Unique within its question
        label: Text shown to the respondent, reused in evidence bullets
        signals: Additive deltas keyed by signal name (subset of SIGNALS)
        scales: Last-write-wins observations keyed by scale name
        path_scores: Additive deltas keyed by path id
        sets: Version-record assignments keyed by dotted field path.
            Only meaningful for refinement questions.
        order: Presentation order (lower first, declaration order breaks ties)
    """
    id: str
    label: str
    signals: Tuple[Tuple[str, float], ...] = ()
    scales: Tuple[Tuple[str, Any], ...] = ()
    path_scores: Tuple[Tuple[str, float], ...] = ()
    sets: Tuple[Tuple[str, Any], ...] = ()
    order: int = 0


@dataclass(frozen=True)
class QuestionDef:
    """
    A diagnostic or refinement question.

    max_select is 1 for single-choice questions and defaults to 2 for
    multi-choice questions.
    """
    id: str
    prompt: str
    type: QuestionType
    options: Tuple[OptionDef, ...]
    max_select: int = 1
    help_text: Optional[str] = None

    @property
    def is_multi(self) -> bool:
        return self.type == QuestionType.MULTI

    def get_option(self, option_id: str) -> Optional[OptionDef]:
        for option in self.options:
            if option.id == option_id:
                return option
        return None


@dataclass(frozen=True)
class ConfidenceBand:
    id: str
    min_delta: float


@dataclass(frozen=True)
class RoutingRule:
    """
    Ordered override rule evaluated at diagnostic completion.

    Guards that are None match anything.
    """
    phase: Optional[str]
    primary_path: str
    confidence_band: Optional[str] = None
    dominant_signal: Optional[str] = None
    secondary_path: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class ExperimentDef:
    id: str
    path: str
    label: str
    timeframe: str = ""


@dataclass(frozen=True)
class SelectionRules:
    suggestions_by_path: Tuple[Tuple[str, Tuple[str, ...]], ...]
    default_pick_count: int = 2
    max_pick_count: int = 3

    def suggestions_for(self, path_id: str) -> Tuple[str, ...]:
        for key, ids in self.suggestions_by_path:
            if key == path_id:
                return ids
        return ()


@dataclass(frozen=True)
class WhyEvidenceConfig:
    templates: Tuple[Tuple[str, str], ...]
    max_bullets: int = 3
    mixed_signal_bullet: str = (
        "Your answers are still mixed, which is normal. The next step is "
        "creating evidence, not forcing certainty."
    )
    no_signal_bullet: str = (
        "Your answers suggest you're still clarifying what kind of progress "
        "you want next."
    )

    def template_for(self, signal: str) -> Optional[str]:
        return dict(self.templates).get(signal)


@dataclass(frozen=True)
class IntentTranslation:
    """
    Supervisor-facing coaching content for one path/version combination.

    Every field is always populated: the translation engine fills absent
    fields with generic phrases.
    """
    coaching_focus: Tuple[str, ...]
    watch_outs: Tuple[str, ...]
    translation: str
    leader_ask: str
    pressure_test: str
    success_criteria: Tuple[str, ...]
    checkpoint_days: int


@dataclass(frozen=True)
class TranslationRule:
    """
    Intent translation rule.

    conditions are (version field, expected value) pairs; field names are
    dotted paths into the version record, without the 'versionOfPath.'
    prefix used in the configuration document.
    """
    primary_path: Optional[str]
    conditions: Tuple[Tuple[str, Any], ...]
    then: Tuple[Tuple[str, Any], ...]


@dataclass(frozen=True)
class FocusTemplate:
    """
    Focus statement template for one path.

    Attributes:
        template: Text with {slot} placeholders
        descriptor_slot: Name of the descriptor placeholder for this path
        descriptor_field: Version-record field that selects the descriptor
        descriptors: value -> descriptor phrase
        default_descriptor: Used when the field is absent or unrecognised
    """
    path_id: str
    template: str
    descriptor_slot: str
    descriptor_field: Optional[str]
    descriptors: Tuple[Tuple[str, str], ...]
    default_descriptor: str

    @property
    def allowed_slots(self) -> Tuple[str, ...]:
        return (self.descriptor_slot, "experiment1")


@dataclass(frozen=True)
class SummaryLabels:
    """Section labels for both summary documents, taken verbatim from config."""
    employee: Tuple[Tuple[str, str], ...]
    leader: Tuple[Tuple[str, str], ...]

    def employee_label(self, key: str) -> str:
        return dict(self.employee)[key]

    def leader_label(self, key: str) -> str:
        return dict(self.leader)[key]


@dataclass(frozen=True)
class ProfileField:
    id: str
    label: str
    type: str = "text"
    options: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ConfigDocument:
    """
    Typed, read-only view of the configuration document.

    Built once by config_loader.parse_config(); every component reads from
    it and none writes to it.
    """
    version: str
    paths: Tuple[PathDef, ...]
    diagnostic_questions: Tuple[QuestionDef, ...]
    refinement_sets: Tuple[Tuple[str, Tuple[QuestionDef, ...]], ...]
    confidence_bands: Tuple[ConfidenceBand, ...]
    confidence_labels: Tuple[Tuple[str, str], ...]
    routing_rules: Tuple[RoutingRule, ...]
    why_evidence: WhyEvidenceConfig
    evidence_max_bullets: int
    translation_rules: Tuple[TranslationRule, ...]
    fallback_translation: Tuple[Tuple[str, Any], ...]
    focus_templates: Tuple[FocusTemplate, ...]
    experiments: Tuple[ExperimentDef, ...]
    selection_rules: SelectionRules
    summary_labels: SummaryLabels
    ui_strings: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    profile_enabled: bool = False
    profile_fields: Tuple[ProfileField, ...] = ()
    default_open_question: str = (
        "What would you recommend as the best next step to test and build "
        "this direction?"
    )

    @property
    def path_ids(self) -> Tuple[str, ...]:
        return tuple(p.id for p in self.paths)

    def get_path(self, path_id: str) -> Optional[PathDef]:
        for path in self.paths:
            if path.id == path_id:
                return path
        return None

    def refinement_questions(self, path_id: str) -> Tuple[QuestionDef, ...]:
        for key, questions in self.refinement_sets:
            if key == path_id:
                return questions
        return ()

    def get_experiment(self, experiment_id: str) -> Optional[ExperimentDef]:
        for experiment in self.experiments:
            if experiment.id == experiment_id:
                return experiment
        return None

    def focus_template(self, path_id: str) -> Optional[FocusTemplate]:
        for template in self.focus_templates:
            if template.path_id == path_id:
                return template
        return None

    def confidence_label(self, band_id: str) -> str:
        return dict(self.confidence_labels).get(band_id, band_id)

    @property
    def lowest_band(self) -> Optional[str]:
        if not self.confidence_bands:
            return None
        return min(self.confidence_bands, key=lambda b: b.min_delta).id


# =============================================================================
# Engine records
# =============================================================================

@dataclass(frozen=True)
class SignalVector:
    """
    Running signal totals plus last-write-wins scales.

    Only ever produced by a full recompute; never patched in place.
    """
    totals: Tuple[Tuple[str, float], ...] = tuple((name, 0) for name in SIGNALS)
    scales: Tuple[Tuple[str, Any], ...] = tuple((name, None) for name in SCALES)

    def value(self, signal: str) -> float:
        return dict(self.totals).get(signal, 0)

    def scale(self, name: str) -> Any:
        return dict(self.scales).get(name)

    def as_dict(self) -> Dict[str, Any]:
        return {"signals": dict(self.totals), "scales": dict(self.scales)}


@dataclass(frozen=True)
class DecisionLogEntry:
    """
    One applied option.

    Multi-choice answers produce one entry per chosen option. path_id is
    set for refinement entries only.
    """
    phase: AnswerPhase
    question_id: str
    option_id: str
    prompt: str
    answer_label: str
    path_id: Optional[str] = None
    signal_deltas: Tuple[Tuple[str, float], ...] = ()
    score_deltas: Tuple[Tuple[str, float], ...] = ()
    sets: Tuple[Tuple[str, Any], ...] = ()

    def to_json(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "pathId": self.path_id,
            "questionId": self.question_id,
            "optionId": self.option_id,
            "prompt": self.prompt,
            "answerLabel": self.answer_label,
            "signalDeltas": dict(self.signal_deltas),
            "scoreDeltas": dict(self.score_deltas),
            "sets": dict(self.sets),
        }


@dataclass(frozen=True)
class Confidence:
    band: str
    delta: float
    top: Optional[str]
    runner_up: Optional[str]
    label: str

    def to_json(self) -> Dict[str, Any]:
        return {
            "band": self.band,
            "delta": self.delta,
            "top": self.top,
            "runnerUp": self.runner_up,
            "label": self.label,
        }


@dataclass(frozen=True)
class RoutingDecision:
    primary_path: str
    secondary_path: Optional[str]
    chosen_by: ChosenBy
    rule_name: Optional[str] = None
