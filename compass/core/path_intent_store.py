"""
Path Intent Store - per-path version records from refinement answers

Responsibilities:
- Hold the primary/secondary path and how it was chosen
- Keep one version record per visited path, keyed by path id
- Apply refinement answers: option 'sets' into the version record,
  option signals into the running signal totals (never path scores)

Lifecycle of a version record:
- Created lazily the first time refinement is entered for that path
- Never deleted; switching primary path and back preserves it

API Philosophy:
- PathIntentStore = dumb container plus dotted-path writes
- FlowManager = decides when records are rebuilt from the answer log
"""

import copy
import logging
from typing import Any, Dict, List, Optional

from compass.contracts import AnswerPhase, ChosenBy, DecisionLogEntry, QuestionDef
from compass.core.accumulator import Answer, SignalAccumulator, apply_answer
from compass.utils.dotted_paths import get_deep, set_deep

logger = logging.getLogger(__name__)


class PathIntentStore:
    """Primary/secondary path selection plus version records per path."""

    def __init__(self):
        self.primary_path: Optional[str] = None
        self.secondary_path: Optional[str] = None
        self.chosen_by: Optional[ChosenBy] = None
        self.version_of_path: Dict[str, Dict[str, Any]] = {}

    # ========================
    # Path selection
    # ========================

    def set_paths(self, primary: str, secondary: Optional[str], chosen_by: ChosenBy) -> None:
        self.primary_path = primary
        self.secondary_path = secondary
        self.chosen_by = chosen_by
        logger.debug(f"Primary path set to {primary} (secondary={secondary}, by={chosen_by.value})")

    # ========================
    # Version records
    # ========================

    def ensure_version(self, path_id: str) -> Dict[str, Any]:
        """Return the version record for a path, creating it on first use."""
        if path_id not in self.version_of_path:
            self.version_of_path[path_id] = {}
            logger.debug(f"Created version record for {path_id}")
        return self.version_of_path[path_id]

    def get_version(self, path_id: Optional[str]) -> Dict[str, Any]:
        """Deep copy of a path's version record ({} if never visited)."""
        if path_id is None:
            return {}
        return copy.deepcopy(self.version_of_path.get(path_id, {}))

    def get_version_field(self, path_id: str, dotted_key: str, default: Any = None) -> Any:
        return get_deep(self.version_of_path.get(path_id, {}), dotted_key, default)

    def apply_refinement_answer(
        self,
        path_id: str,
        question: QuestionDef,
        answer: Answer,
        accumulator: SignalAccumulator,
    ) -> List[DecisionLogEntry]:
        """
        Apply one refinement answer.

        Each chosen option's 'sets' are written into the path's version
        record; its signals go into the accumulator with path scores left
        untouched.

        Returns:
            Decision log entries for the applied options
        """
        record = self.ensure_version(path_id)
        entries = apply_answer(
            accumulator, question, answer, AnswerPhase.REFINEMENT,
            path_id=path_id, score_paths=False,
        )
        for entry in entries:
            for dotted_key, value in entry.sets:
                set_deep(record, dotted_key, value)
                logger.debug(f"Version {path_id}: {dotted_key} = {value}")
        return entries

    # ========================
    # Serialization
    # ========================

    def to_json(self) -> Dict[str, Any]:
        return {
            "primaryPath": self.primary_path,
            "secondaryPath": self.secondary_path,
            "chosenBy": self.chosen_by.value if self.chosen_by else None,
            "versionOfPath": copy.deepcopy(self.version_of_path),
        }
