"""Exact-match find/replace of resume lines."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from resumeforge.models import EditPair

logger = logging.getLogger(__name__)


@dataclass
class PatchResult:
    text: str
    applied: List[EditPair] = field(default_factory=list)
    skipped: List[EditPair] = field(default_factory=list)


def apply_edits(document: str, edits: List[EditPair]) -> PatchResult:
    """Apply each edit in order as a literal, case-sensitive replacement.

    An edit whose old text is not present verbatim is skipped; nothing is
    matched fuzzily and nothing raises.
    """
    result = PatchResult(text=document)
    for edit in edits:
        if edit.old_text and edit.old_text in result.text:
            result.text = result.text.replace(edit.old_text, edit.new_text)
            result.applied.append(edit)
        else:
            result.skipped.append(edit)
    if result.skipped:
        logger.info("%d of %d edits did not match the resume text", len(result.skipped), len(edits))
    return result
