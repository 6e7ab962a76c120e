"""
Summary Generator - respondent summary and supervisor coaching brief

Responsibilities:
- Why-evidence bullets from the strongest core signals
- Evidence bullets from the tail of the decision log
- Experiment bullets from the plan selection
- Deterministic assembly of both documents from configured section labels

Design principles:
- Pure composition: no state, no I/O
- Full regeneration every time the plan is finalized (never patched)
- Section headers verbatim from configuration, bullet lines prefixed '• '
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from compass.contracts import (
    CORE_SIGNALS,
    ConfigDocument,
    Confidence,
    ExperimentDef,
    IntentTranslation,
    SignalVector,
)
from compass.core.decision_log import BULLET, DecisionLog, evidence_bullets
from compass.utils.template_renderer import render_template

logger = logging.getLogger(__name__)

NONE_SELECTED = f"{BULLET} (No experiments selected yet.)"


@dataclass(frozen=True)
class Summaries:
    employee: str
    leader: str

    def to_json(self) -> Dict[str, str]:
        return {"employee": self.employee, "leader": self.leader}


@dataclass(frozen=True)
class SummaryContext:
    """Everything the generator reads. Built by the flow manager at finalize time."""
    signals: SignalVector
    confidence: Confidence
    decision_log: DecisionLog
    primary_path: str
    secondary_path: Optional[str]
    experiments: Tuple[ExperimentDef, ...]
    focus_statement: str
    open_question: str
    translation: IntentTranslation
    profile: Tuple[Tuple[str, Any], ...] = field(default=())


def bullet(text: str) -> str:
    return f"{BULLET} {text}"


def why_bullets(signals: SignalVector, confidence: Confidence, config: ConfigDocument) -> List[str]:
    """
    Why-evidence bullets.

    Core signals are taken highest first (stable on ties), non-positive
    values and signals without a template are skipped, and the list is
    capped at max_bullets. In the lowest confidence band a "still mixed"
    bullet is prepended and the list re-truncated to the cap. When nothing
    qualifies a single "still clarifying" bullet is returned.
    """
    why = config.why_evidence
    ranked = sorted(CORE_SIGNALS, key=lambda name: signals.value(name), reverse=True)

    bullets = []
    for name in ranked:
        if signals.value(name) <= 0:
            continue
        template = why.template_for(name)
        if template and len(bullets) < why.max_bullets:
            bullets.append(bullet(template))

    if confidence.band == config.lowest_band:
        bullets.insert(0, bullet(why.mixed_signal_bullet))
        return bullets[:why.max_bullets]

    return bullets or [bullet(why.no_signal_bullet)]


def experiment_bullets(experiments: Sequence[ExperimentDef]) -> str:
    if not experiments:
        return NONE_SELECTED
    lines = []
    for experiment in experiments:
        if experiment.timeframe:
            lines.append(bullet(f"{experiment.label} ({experiment.timeframe})"))
        else:
            lines.append(bullet(experiment.label))
    return "\n".join(lines)


class SummaryGenerator:
    """Generate the two final text documents"""

    def __init__(self, config: ConfigDocument):
        self.config = config
        logger.info("Summary Generator initialized")

    # ==================== PUBLIC API ====================

    def generate(self, context: SummaryContext) -> Summaries:
        """
        Generate both documents from scratch.

        Args:
            context: Snapshot of the settled session

        Returns:
            Summaries(employee, leader)
        """
        employee = self._employee_text(context)
        leader = self._leader_text(context)
        logger.info(
            f"Summaries generated for {context.primary_path} "
            f"({len(employee)} + {len(leader)} characters)"
        )
        return Summaries(employee=employee, leader=leader)

    # ==================== DOCUMENTS ====================

    def _employee_text(self, context: SummaryContext) -> str:
        label = self.config.summary_labels.employee_label
        sections = [label("title")]

        if context.profile:
            sections.append(self._section(label("profile"), self._profile_lines(context.profile)))

        sections.append(self._section(label("path"), self._direction_lines(context)))
        sections.append(self._section(
            label("why"), "\n".join(why_bullets(context.signals, context.confidence, self.config))
        ))
        sections.append(self._section(label("focus"), context.focus_statement or "(Not written yet.)"))
        sections.append(self._section(label("experiments"), experiment_bullets(context.experiments)))
        sections.append(self._section(
            label("evidence"), evidence_bullets(context.decision_log, self.config.evidence_max_bullets)
        ))
        sections.append(self._section(label("openQuestion"), context.open_question))

        return "\n\n".join(sections) + "\n"

    def _leader_text(self, context: SummaryContext) -> str:
        label = self.config.summary_labels.leader_label
        translation = context.translation

        sections = [
            label("title"),
            self._section(label("direction"), self._direction_lines(context)),
            self._section(label("translation"), translation.translation),
            self._section(label("focus"), context.focus_statement or "(Not written yet.)"),
            self._section(label("coachingFocus"), self._bullets(translation.coaching_focus)),
            self._section(label("watchOuts"), self._bullets(translation.watch_outs)),
            self._section(label("experiments"), experiment_bullets(context.experiments)),
            self._section(label("ask"), translation.leader_ask),
            self._section(label("pressureTest"), translation.pressure_test),
            self._section(label("success"), self._bullets(translation.success_criteria)),
            self._section(
                label("checkpoint"),
                render_template(label("checkpointTemplate"), {"days": str(translation.checkpoint_days)}),
            ),
            self._section(label("openQuestion"), context.open_question),
        ]
        return "\n\n".join(sections) + "\n"

    # ==================== FORMATTING ====================

    def _section(self, heading: str, body: str) -> str:
        return f"{heading}\n{body}"

    def _bullets(self, items: Sequence[str]) -> str:
        return "\n".join(bullet(item) for item in items)

    def _direction_lines(self, context: SummaryContext) -> str:
        lines = [f"Primary: {self._path_text(context.primary_path)}"]
        if context.secondary_path and context.secondary_path != context.primary_path:
            lines.append(f"Secondary: {self._path_text(context.secondary_path)}")
        lines.append(f"Confidence: {context.confidence.label}")
        return "\n".join(lines)

    def _path_text(self, path_id: str) -> str:
        path = self.config.get_path(path_id)
        if path is None:
            return path_id
        return f"{path.label} ({path.short})" if path.short else path.label

    def _profile_lines(self, profile: Sequence[Tuple[str, Any]]) -> str:
        labels = {f.id: f.label for f in self.config.profile_fields}
        lines = []
        for field_id, value in profile:
            if value in (None, ""):
                continue
            lines.append(bullet(f"{labels.get(field_id, field_id)}: {value}"))
        return "\n".join(lines) if lines else bullet("(Not provided.)")
