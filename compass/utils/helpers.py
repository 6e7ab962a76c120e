"""
Helpers for session ids and saved summary files
"""

import logging
import uuid
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

SUMMARY_KINDS = ("employee", "leader")


def generate_session_id(short=True):
    """
    Generate unique session identifier

    Args:
        short (bool): If True, return 8-char hex. If False, return full UUID hex.
    """
    full_id = uuid.uuid4().hex
    return full_id[:8] if short else full_id


def summary_filename(kind, session_id, when=None):
    """
    Filename for one saved summary document.

    Format: {kind}_summary_{YYYYMMDD_HHMMSS}_{session_id}.txt

    Examples:
        >>> summary_filename("leader", "b4c8d1e2", datetime(2025, 11, 26, 15, 30, 45))
        'leader_summary_20251126_153045_b4c8d1e2.txt'
    """
    stamp = (when or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"{kind}_summary_{stamp}_{session_id}.txt"


def save_summaries(summaries, session_id, output_dir="outputs/summaries"):
    """
    Write both summary documents as UTF-8 text files.

    Args:
        summaries: dict with 'employee' and 'leader' text
        session_id: Session the documents belong to
        output_dir: Created if missing

    Returns:
        list: Absolute paths, employee document first
    """
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    when = datetime.now()

    paths = []
    for kind in SUMMARY_KINDS:
        path = directory / summary_filename(kind, session_id, when)
        with open(path, "w", encoding="utf-8") as f:
            f.write(summaries[kind])
        paths.append(str(path.absolute()))

    logger.info(f"Saved {len(paths)} summaries for session {session_id} to {directory}")
    return paths
