"""
Experiment Selector - default experiments per path and manual toggling

Selections are ordered tuples of experiment ids, bounded by the configured
max pick count. Unknown ids are skipped, never raised.
"""

import logging
from typing import Sequence, Tuple

from compass.contracts import ExperimentDef, SelectionRules

logger = logging.getLogger(__name__)


def select_defaults(path_id: str, library: Sequence[ExperimentDef],
                    rules: SelectionRules) -> Tuple[ExperimentDef, ...]:
    """
    Default experiments for a path.

    Suggestion ids are resolved against the library in suggestion order,
    unresolvable ids are skipped, and the result is truncated to the
    default pick count.
    """
    by_id = {e.id: e for e in library}
    resolved = []
    for experiment_id in rules.suggestions_for(path_id):
        experiment = by_id.get(experiment_id)
        if experiment is None:
            logger.debug(f"Suggested experiment '{experiment_id}' for {path_id} not in library")
            continue
        resolved.append(experiment)
    return tuple(resolved[:rules.default_pick_count])


def toggle_experiment(selected: Sequence[str], experiment_id: str, max_pick: int) -> Tuple[str, ...]:
    """
    Toggle one experiment in the current selection.

    Selected -> removed. Unselected -> appended while below max_pick,
    otherwise no-op.
    """
    current = tuple(selected)
    if experiment_id in current:
        return tuple(x for x in current if x != experiment_id)
    if len(current) >= max_pick:
        logger.debug(f"Experiment cap {max_pick} reached, '{experiment_id}' not added")
        return current
    return current + (experiment_id,)


def experiments_for_path(path_id: str, library: Sequence[ExperimentDef]) -> Tuple[ExperimentDef, ...]:
    """Library entries belonging to a path, in library order."""
    return tuple(e for e in library if e.path == path_id)
