# prompts.py
from __future__ import annotations
import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

from resumeforge.models import EditPair, ExtractedProfile

TEMPLATE_DIR = Path(__file__).with_name("templates")

COMMON_SECTIONS = (
    "Summary/Objective, Work Experience, Education, Skills, Projects, "
    "Extracurricular Activities, Languages, Volunteering Experience, Hobbies & Interests"
)

LATEX_SPECIALS = "& % $ # _ { } ~ ^ \\"

# ----------------------------
# JSON schemas
# ----------------------------
STRUCTURE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "location": {"type": "string"},
        "phone": {"type": "string"},
        "email": {"type": "string"},
        "links": {"type": "array", "items": {"type": "string"}},
        "sections": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["name", "location", "phone", "email", "links", "sections"],
    "additionalProperties": False,
}

CHANGES_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "changes": {
            "type": "array",
            "items": {
                "type": "array",
                "items": {"type": "string"},
                "minItems": 2,
                "maxItems": 2,
            },
        }
    },
    "required": ["changes"],
    "additionalProperties": False,
}

ATS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "score": {"type": "integer"},
        "matched_keywords": {"type": "array", "items": {"type": "string"}},
        "missing_keywords": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["score", "matched_keywords", "missing_keywords"],
    "additionalProperties": False,
}

# ----------------------------
# Shared instruction blocks
# ----------------------------
_EDIT_RULES = (
    "For every line that you change, give me the EXACT old line in FULL as well as the new line "
    "with the changes. I want to be able to easily 'CTRL F' to find the entirety of the old text "
    "and replace it with the new text.\n\n"
    "Aim for about 60-70 characters per new line. Only edit resume bullet points. "
    "Do not invent experience the candidate does not have.\n\n"
    "Respond with JSON only, no more no less: {\"changes\": [[\"Old line\", \"New line\"], "
    "[\"Another old line\", \"Another new line\"]]}. Do not format it in a code block, "
    "do not add any explanation and DO NOT include citations. Ensure the JSON is valid."
)

_ROLE = "You are an expert in making resumes that catch the attention of recruiters and hiring managers."


@lru_cache(maxsize=1)
def example_template() -> str:
    return (TEMPLATE_DIR / "resume_example.tex").read_text(encoding="utf-8")


def structure_prompt(source_desc: str) -> str:
    return (
        f"Look at {source_desc} and extract the candidate's personal details and the list of "
        "sections it has.\n\n"
        "Return the candidate's full name, location, phone number and email exactly as written "
        "(use an empty string when one is missing), any profile or portfolio URLs in `links`, "
        "and the section headings in the order they appear in `sections`. "
        f"Common sections are: {COMMON_SECTIONS}."
    )


def section_changes_prompt(source_desc: str, section: str, job_description: str) -> str:
    return (
        f"{_ROLE}\n\n"
        f"Using {source_desc} and the job description, optimize the \"{section}\" section to make "
        "this resume the best possible candidate for the role. Your goal is to improve ATS score "
        "by including key terms in the job description in the resume, with extra emphasis on "
        "recurring terms. Only change lines that belong to this section.\n\n"
        f"{_EDIT_RULES}\n\n"
        "Below is the job description:\n" + job_description
    )


def document_changes_prompt(source_desc: str, sections: List[str], job_description: str) -> str:
    listed = ", ".join(f"\"{s}\"" for s in sections) if sections else "all sections"
    return (
        f"{_ROLE}\n\n"
        f"Using {source_desc} and the job description, optimize the whole resume to make it the "
        "best possible candidate for the role. Your goal is to improve ATS score by including key "
        "terms in the job description in the resume, with extra emphasis on recurring terms.\n\n"
        f"The resume has these sections: {listed}. Consider each of them.\n\n"
        f"{_EDIT_RULES}\n\n"
        "Below is the job description:\n" + job_description
    )


def regenerate_prompt(source_desc: str, edits: List[EditPair], profile: ExtractedProfile) -> str:
    changes = [[e.old_text, e.new_text] for e in edits]
    return (
        f"Rewrite {source_desc} as a complete LaTeX document that follows the format of the example "
        "below.\n\n"
        "Rules:\n"
        "1. Apply every change in the list: replace the old text with the new text exactly.\n"
        "2. Keep ALL other content of the resume, word for word. Do not drop or summarize anything.\n"
        "3. Use the personal details below for the heading, and include every link.\n"
        f"4. Escape LaTeX special characters ({LATEX_SPECIALS}) in resume content.\n"
        "5. Return ONLY the raw LaTeX source, starting with \\documentclass and ending with "
        "\\end{document}. No commentary, no markdown, no code fences.\n\n"
        "Personal details (JSON):\n" + json.dumps(profile.model_dump()) + "\n\n"
        "Changes (JSON list of [old, new]):\n" + json.dumps(changes) + "\n\n"
        "Example LaTeX resume:\n" + example_template()
    )


def ats_prompt(source_desc: str, job_description: str) -> str:
    return (
        "You are an applicant tracking system. Compare "
        f"{source_desc} against the job description below.\n\n"
        "List the important keywords from the job description (skills, tools, qualifications) "
        "that appear in the resume as `matched_keywords`, the ones that do not as "
        "`missing_keywords`, and give an integer `score` from 0 to 100 for how well the resume "
        "matches. Return ONLY JSON.\n\n"
        "Below is the job description:\n" + job_description
    )
