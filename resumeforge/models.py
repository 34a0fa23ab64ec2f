"""Value objects and model-output schemas for the optimization pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ResumeStructure(BaseModel):
    """Raw structure-extraction output."""

    name: str
    location: str
    phone: str
    email: str
    links: List[str] = Field(default_factory=list)
    sections: List[str]


class ExtractedProfile(BaseModel):
    name: str
    location: str
    phone: str
    email: str
    links: List[str] = Field(default_factory=list)

    def with_links(self, links: List[str]) -> "ExtractedProfile":
        merged: List[str] = []
        for url in [*self.links, *links]:
            if url not in merged:
                merged.append(url)
        return self.model_copy(update={"links": merged})


class EditPair(BaseModel):
    section: Optional[str] = None
    old_text: str
    new_text: str

    def is_meaningful(self) -> bool:
        return bool(self.old_text.strip()) and self.old_text != self.new_text


class ATSReport(BaseModel):
    score: int = Field(ge=0, le=100)
    matched_keywords: List[str] = Field(default_factory=list)
    missing_keywords: List[str] = Field(default_factory=list)


# Resume sources: one pipeline, two ways of showing the resume to the model.

@dataclass(frozen=True)
class FileResumeSource:
    """A resume uploaded to the model provider's file store."""

    file_id: str

    kind = "file"

    def as_input_parts(self) -> List[Dict[str, Any]]:
        return [{"type": "input_file", "file_id": self.file_id}]

    def describe(self) -> str:
        return "the uploaded resume file"


@dataclass(frozen=True)
class TextResumeSource:
    """A resume pasted as plain text."""

    text: str

    kind = "text"

    def as_input_parts(self) -> List[Dict[str, Any]]:
        return [{"type": "input_text", "text": "Resume (plain text):\n" + self.text}]

    def describe(self) -> str:
        return "the resume text"

    def replaced(self, text: str) -> "TextResumeSource":
        return TextResumeSource(text=text)


def serialize_edits(edits: List[EditPair]) -> List[Dict[str, Any]]:
    return [e.model_dump() for e in edits]
