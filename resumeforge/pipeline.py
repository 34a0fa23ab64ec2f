"""Resume optimization pipeline.

Extract structure -> propose edits (per section or whole document) ->
regenerate LaTeX -> render PDF. Every step works on a ``ResumeSource`` so the
uploaded-file and pasted-text flows share one code path.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from pydantic import ValidationError

from resumeforge import prompts
from resumeforge.errors import NotFound, RenderError, UpstreamError
from resumeforge.llm_client import LLMClient
from resumeforge.models import (
    ATSReport,
    EditPair,
    ExtractedProfile,
    FileResumeSource,
    ResumeStructure,
    TextResumeSource,
)
from resumeforge.parsers import extract_links, extract_text_links
from resumeforge.patching import apply_edits
from resumeforge.renderer import LatexRenderer
from resumeforge.storage import ResumeStorage
from resumeforge.user_store import UserStore, has_unlimited_plan

logger = logging.getLogger(__name__)

ResumeSource = Union[FileResumeSource, TextResumeSource]

PER_SECTION = "per_section"
WHOLE_DOCUMENT = "whole_document"
EDIT_MODES = (PER_SECTION, WHOLE_DOCUMENT)


class StructureExtractor:
    def __init__(self, llm: LLMClient):
        self.llm = llm

    def extract(self, source: ResumeSource) -> Optional[Tuple[ExtractedProfile, List[str]]]:
        parts = source.as_input_parts() + [
            {"type": "input_text", "text": prompts.structure_prompt(source.describe())}
        ]
        data = self.llm.complete_json(parts, "resume_structure", prompts.STRUCTURE_SCHEMA)
        if data is None:
            logger.error("Failed to get resume structure")
            return None
        try:
            structure = ResumeStructure.model_validate(data)
        except ValidationError as e:
            logger.error("Resume structure did not match schema: %s", e)
            return None
        profile = ExtractedProfile(**structure.model_dump(exclude={"sections"}))
        sections = [s.strip() for s in structure.sections if s and s.strip()]
        logger.debug("Sections: %s", sections)
        return profile, sections


def _pairs_from(data: Optional[Dict[str, Any]], section: Optional[str]) -> Optional[List[EditPair]]:
    """Turn ``{"changes": [[old, new], ...]}`` into edit pairs; None if malformed."""
    if data is None:
        return None
    changes = data.get("changes")
    # older prompt shape: {"changes": {"0": [old, new], ...}}
    if isinstance(changes, dict):
        changes = list(changes.values())
    if not isinstance(changes, list):
        return None
    pairs: List[EditPair] = []
    for item in changes:
        if not (isinstance(item, list) and len(item) == 2 and all(isinstance(x, str) for x in item)):
            logger.warning("Dropping malformed change %r", item)
            continue
        pair = EditPair(section=section, old_text=item[0], new_text=item[1])
        if pair.is_meaningful():
            pairs.append(pair)
    return pairs


class EditProposer:
    def __init__(self, llm: LLMClient, max_workers: int = 6):
        self.llm = llm
        self.max_workers = max_workers

    def propose_section(self, source: ResumeSource, section: str, job_description: str) -> Optional[List[EditPair]]:
        # strict mode rejects minItems/maxItems; _pairs_from enforces two-string pairs
        parts = source.as_input_parts() + [{
            "type": "input_text",
            "text": prompts.section_changes_prompt(source.describe(), section, job_description),
        }]
        pairs = _pairs_from(self.llm.complete_json(parts, "changes", prompts.CHANGES_SCHEMA, strict=False), section)
        if pairs is None:
            logger.error("Error parsing changes for %s", section)
        else:
            logger.debug("Successfully parsed %s (%d changes)", section, len(pairs))
        return pairs

    def propose_document(self, source: ResumeSource, sections: List[str], job_description: str) -> Optional[List[EditPair]]:
        parts = source.as_input_parts() + [{
            "type": "input_text",
            "text": prompts.document_changes_prompt(source.describe(), sections, job_description),
        }]
        pairs = _pairs_from(self.llm.complete_json(parts, "changes", prompts.CHANGES_SCHEMA, strict=False), None)
        if pairs is None:
            logger.error("Error parsing whole-document changes")
        return pairs

    def propose(self, source: ResumeSource, job_description: str, sections: List[str],
                mode: str = PER_SECTION) -> List[EditPair]:
        """Return the canonical edit batch: a flat list in section order.

        In per-section mode the calls run concurrently and are joined in
        order; a network error in any call propagates, a parse failure only
        empties that section.
        """
        if mode == WHOLE_DOCUMENT or not sections:
            return self.propose_document(source, sections, job_description) or []
        if mode != PER_SECTION:
            raise ValueError(f"unknown edit mode {mode!r}")

        workers = max(1, min(self.max_workers, len(sections)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(self.propose_section, source, section, job_description)
                for section in sections
            ]
            results = [f.result() for f in futures]

        edits: List[EditPair] = []
        for pairs in results:
            edits.extend(pairs or [])
        return edits


class DocumentRegenerator:
    def __init__(self, llm: LLMClient):
        self.llm = llm

    def regenerate(self, source: ResumeSource, edits: List[EditPair], profile: ExtractedProfile) -> Optional[str]:
        parts = source.as_input_parts() + [{
            "type": "input_text",
            "text": prompts.regenerate_prompt(source.describe(), edits, profile),
        }]
        latex = self.llm.complete_text(parts)
        if not latex:
            logger.error("Failed to regenerate resume markup")
            return None
        return latex


class ATSScorer:
    def __init__(self, llm: LLMClient):
        self.llm = llm

    def score(self, source: ResumeSource, job_description: str) -> Optional[ATSReport]:
        parts = source.as_input_parts() + [{
            "type": "input_text",
            "text": prompts.ats_prompt(source.describe(), job_description),
        }]
        data = self.llm.complete_json(parts, "ats_report", prompts.ATS_SCHEMA)
        if data is None:
            return None
        try:
            return ATSReport.model_validate(data)
        except ValidationError as e:
            logger.error("ATS report did not match schema: %s", e)
            return None


@dataclass
class OptimizationResult:
    edits: List[EditPair] = field(default_factory=list)
    profile: Optional[ExtractedProfile] = None
    optimized_resume_id: Optional[str] = None


class ResumeOptimizer:
    """Runs one optimization or ATS request for a user."""

    def __init__(
        self,
        users: UserStore,
        storage: ResumeStorage,
        llm: LLMClient,
        renderer: LatexRenderer,
        *,
        mode: str = PER_SECTION,
        max_links: int = 5,
        max_workers: int = 6,
    ):
        if mode not in EDIT_MODES:
            raise ValueError(f"EDIT_MODE must be one of {EDIT_MODES}, got {mode!r}")
        self.users = users
        self.storage = storage
        self.llm = llm
        self.renderer = renderer
        self.mode = mode
        self.max_links = max_links
        self.extractor = StructureExtractor(llm)
        self.proposer = EditProposer(llm, max_workers=max_workers)
        self.regenerator = DocumentRegenerator(llm)
        self.ats = ATSScorer(llm)

    # ---- source resolution ----
    @contextmanager
    def _resume_source(self, user: Dict[str, Any]) -> Iterator[Tuple[ResumeSource, List[str]]]:
        """Yield the user's resume source and the links found in it.

        The model-side file handle used by this run is released when the
        block exits, whatever happened inside it.
        """
        text = user.get("resume_text")
        if text:
            yield TextResumeSource(text=text), extract_text_links(text, self.max_links)
            return

        if not user.get("resume_file_id"):
            raise NotFound("No resume uploaded")

        stored = self.storage.open_resume(user["resume_file_id"])
        links = extract_links(stored.data, self.max_links)
        # each run owns its handle: take the one left by the upload, if no
        # concurrent run got to it first, else upload a fresh one
        file_id = user.get("openai_file_id")
        if not (file_id and self.users.claim_openai_file(user["_id"], file_id)):
            original = stored.metadata.get("originalFilename") or stored.filename
            file_id = self.llm.upload_file(stored.data, original)
        try:
            yield FileResumeSource(file_id=file_id), links
        finally:
            self.llm.delete_file(file_id)

    # ---- entry points ----
    def optimize(self, user: Dict[str, Any], job_description: str) -> OptimizationResult:
        result = OptimizationResult()
        with self._resume_source(user) as (source, links):
            extracted = self.extractor.extract(source)
            if extracted is None:
                raise UpstreamError("Failed to analyze resume")
            profile, sections = extracted
            result.profile = profile.with_links(links)

            result.edits = self.proposer.propose(source, job_description, sections, self.mode)
            logger.info("Proposed %d edits across %d sections", len(result.edits), len(sections))

            if isinstance(source, TextResumeSource):
                # the regenerator then only needs to lay out already-patched text
                source = source.replaced(apply_edits(source.text, result.edits).text)

            latex = self.regenerator.regenerate(source, result.edits, result.profile)

        if latex:
            result.optimized_resume_id = self._render_and_store(user, latex)

        # members on a paid plan may already be at zero; the store never goes below it
        if not self.users.consume_credit(user["_id"]) and not has_unlimited_plan(user):
            logger.warning("User %s ran out of credits mid-request", user["_id"])
        return result

    def score_ats(self, user: Dict[str, Any], job_description: str) -> ATSReport:
        with self._resume_source(user) as (source, _links):
            report = self.ats.score(source, job_description)
        if report is None:
            raise UpstreamError("Failed to score resume")
        return report

    def _render_and_store(self, user: Dict[str, Any], latex: str) -> Optional[str]:
        try:
            pdf = self.renderer.render(latex, str(user["_id"]))
        except RenderError as e:
            logger.error("Render failed for user %s: %s", user["_id"], e)
            return None
        file_id = self.storage.save_optimized(user, pdf, user.get("resume_filename"))
        self.users.set_optimized_resume(user["_id"], file_id)
        return str(file_id)
