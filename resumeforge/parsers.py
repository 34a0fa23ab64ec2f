# parsers.py
from __future__ import annotations
import io
import logging
import re
from typing import Iterable, List

from pypdf import PdfReader
from pypdf.generic import DictionaryObject

logger = logging.getLogger(__name__)

# ----------------------------
# Regexes
# ----------------------------
URL_RE = re.compile(r"(?:https?://|www\.)[^\s<>()\"']+", re.I)
TRAILING_PUNCT = ".,;:!?"

def _dedupe(urls: Iterable[str], limit: int) -> List[str]:
    out: List[str] = []
    for u in urls:
        u = (u or "").strip()
        if u and u not in out:
            out.append(u)
        if len(out) >= limit:
            break
    return out

def _is_link_annotation(annot) -> bool:
    return isinstance(annot, DictionaryObject) and annot.get("/Subtype") == "/Link"

def _annotation_uri(annot) -> str:
    action = annot.get("/A")
    if action is None:
        return ""
    action = action.get_object()
    if not isinstance(action, DictionaryObject):
        return ""
    uri = action.get("/URI")
    return str(uri) if uri else ""

# ----------------------------
# Public API
# ----------------------------
def extract_links(pdf_bytes: bytes, limit: int = 5) -> List[str]:
    """Collect hyperlink targets from a PDF's link annotations.

    Pages are walked in order; the result keeps first-seen order, drops
    duplicates and holds at most ``limit`` URLs. Any failure to read the
    document is logged and yields an empty list.
    """
    if not pdf_bytes:
        return []
    try:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        found: List[str] = []
        for page in reader.pages:
            annots = page.get("/Annots")
            if not annots:
                continue
            for ref in annots.get_object():
                annot = ref.get_object()
                if _is_link_annotation(annot):
                    uri = _annotation_uri(annot)
                    if uri:
                        found.append(uri)
    except Exception as e:
        logger.warning("Link extraction failed: %s", e)
        return []
    links = _dedupe(found, limit)
    logger.debug("Extracted %d links from PDF", len(links))
    return links

def extract_text_links(text: str, limit: int = 5) -> List[str]:
    """Same policy as extract_links, for URLs written out in plain text."""
    matches = (m.group(0).rstrip(TRAILING_PUNCT) for m in URL_RE.finditer(text or ""))
    return _dedupe(matches, limit)

