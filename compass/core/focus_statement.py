"""
Focus Statement Builder - one-sentence statement of intent

Fills a path's template with two slots:
- the path's descriptor slot, resolved from the version record's
  discriminant field through the path's descriptor table
- {experiment1}, the label of the first selected experiment
"""

import logging
from typing import Any, Dict, Optional, Sequence

from compass.contracts import ExperimentDef, FocusTemplate
from compass.utils.dotted_paths import get_deep
from compass.utils.template_renderer import render_template

logger = logging.getLogger(__name__)

DEFAULT_EXPERIMENT_PHRASE = "one meaningful stretch experiment"


def resolve_descriptor(template: FocusTemplate, version: Dict[str, Any]) -> str:
    """Descriptor for the version's discriminant value, or the path default."""
    if not template.descriptor_field:
        return template.default_descriptor
    value = get_deep(version, template.descriptor_field)
    if value is None:
        return template.default_descriptor
    descriptor = dict(template.descriptors).get(str(value))
    if descriptor is None:
        logger.debug(
            f"No descriptor for {template.descriptor_field}={value!r} on {template.path_id}, using default"
        )
        return template.default_descriptor
    return descriptor


def build(path_id: str, version: Dict[str, Any], selected_experiments: Sequence[ExperimentDef],
          template: Optional[FocusTemplate]) -> str:
    """
    Build the focus statement for a path.

    Args:
        path_id: Primary path
        version: The path's version record
        selected_experiments: Current plan selection, in order
        template: The path's focus template (None -> empty statement)

    Returns:
        Rendered statement
    """
    if template is None:
        logger.warning(f"No focus template configured for {path_id}")
        return ""

    first = selected_experiments[0].label if selected_experiments else DEFAULT_EXPERIMENT_PHRASE
    return render_template(template.template, {
        template.descriptor_slot: resolve_descriptor(template, version),
        "experiment1": first,
    })
