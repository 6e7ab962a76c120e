"""
Decision Log - ordered record of every applied answer option

The log is rebuilt by the flow manager on every recompute (diagnostic
entries first, then refinement entries) and is otherwise append-only.
It feeds evidence bullets in the respondent summary.
"""

import logging
from typing import Iterable, Iterator, List, Optional, Tuple

from compass.contracts import AnswerPhase, DecisionLogEntry

logger = logging.getLogger(__name__)

BULLET = "•"
NO_EVIDENCE_BULLET = f"{BULLET} (No evidence captured yet.)"


class DecisionLog:
    """Append-only list of DecisionLogEntry."""

    def __init__(self, entries: Optional[Iterable[DecisionLogEntry]] = None):
        self._entries: List[DecisionLogEntry] = list(entries or ())

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[DecisionLogEntry]:
        return iter(self._entries)

    def append(self, entry: DecisionLogEntry) -> None:
        self._entries.append(entry)

    def extend(self, entries: Iterable[DecisionLogEntry]) -> None:
        self._entries.extend(entries)

    def entries(self, phase: Optional[AnswerPhase] = None) -> Tuple[DecisionLogEntry, ...]:
        if phase is None:
            return tuple(self._entries)
        return tuple(e for e in self._entries if e.phase == phase)

    def last(self, count: int) -> Tuple[DecisionLogEntry, ...]:
        """
        The most recent `count` entries, in original chronological order.

        Example: with entries 1..6, last(4) returns entries 3, 4, 5, 6.
        """
        if count <= 0:
            return ()
        return tuple(self._entries[-count:])

    def to_json(self) -> List[dict]:
        return [e.to_json() for e in self._entries]


def format_evidence_bullet(entry: DecisionLogEntry) -> str:
    return f"{BULLET} {entry.prompt} → “{entry.answer_label}”"


def evidence_bullets(log: DecisionLog, max_entries: int = 4) -> str:
    """
    Render the last max_entries log entries as bullet lines.

    Returns:
        Newline-joined bullets, or a single placeholder bullet when the
        log is empty
    """
    picks = log.last(max_entries)
    if not picks:
        return NO_EVIDENCE_BULLET
    return "\n".join(format_evidence_bullet(e) for e in picks)
