"""
Named-slot template rendering.

Templates use {slot} placeholders. Only slots in the supplied mapping are
substituted; anything else stays as literal text. Load-time validation uses
find_slots() to reject templates that reference slots outside a path's
closed slot set.
"""

import re
from typing import Dict, List

SLOT_PATTERN = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


def find_slots(template: str) -> List[str]:
    """Return slot names in order of first appearance."""
    seen = []
    for match in SLOT_PATTERN.finditer(template):
        name = match.group(1)
        if name not in seen:
            seen.append(name)
    return seen


def render_template(template: str, slots: Dict[str, str]) -> str:
    """
    Substitute every occurrence of each known slot.

    Args:
        template: Text with {slot} placeholders
        slots: slot name -> replacement text

    Returns:
        Rendered text. Unknown placeholders are left untouched.
    """
    def _replace(match):
        name = match.group(1)
        if name in slots:
            return str(slots[name])
        return match.group(0)

    return SLOT_PATTERN.sub(_replace, template)
