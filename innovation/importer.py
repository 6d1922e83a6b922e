from __future__ import annotations

import io
import json
import logging
import re
from datetime import UTC, datetime
from typing import Any

from pypdf import PdfReader
from pypdf.errors import PdfReadError
from sqlalchemy.orm import Session

from innovation.llm import LLMClient
from innovation.models import Idea
from innovation.phases import PHASES, coerce_phase, default_progress
from innovation.utils import as_str

log = logging.getLogger(__name__)

MAX_TEXT_CHARS = 50_000

_URL_RE = re.compile(r"https?://\S+")
_MARKDOWN_RE = re.compile(r"[*_~`#]")
_BLANK_LINES_RE = re.compile(r"\n{3,}")

EXTRACT_PROMPT = f"""\
Extract the business idea described in the text and return it as JSON.

Fields:
- name: a short, concise title for the idea
- target_customer: the target customer segment
- price_range: the price range
- value: the value proposition
- competitors: competing companies or products
- current_phase: one of {", ".join(f'"{p}"' for p in PHASES)}

Respond with ONLY valid JSON:
{{
  "name": "string",
  "target_customer": "string",
  "price_range": "string",
  "value": "string",
  "competitors": "string",
  "current_phase": "string"
}}
"""


class IdeaImportError(ValueError):
    """Input text could not be turned into an idea."""


def preprocess_text(text: str) -> str:
    """Drop URLs and markdown markers, collapse runs of blank lines."""
    text = _URL_RE.sub("", text or "")
    text = _MARKDOWN_RE.sub("", text)
    text = _BLANK_LINES_RE.sub("\n\n", text)
    return text.strip()


def split_text(text: str, max_length: int = MAX_TEXT_CHARS) -> list[str]:
    return [text[i:i + max_length] for i in range(0, len(text), max_length)]


def pdf_to_text(data: bytes) -> str:
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except PdfReadError as exc:
        log.warning("Unreadable PDF: %s", exc)
        raise IdeaImportError(f"Could not read PDF: {exc}") from exc
    return "\n".join(pages)


def normalize_extracted(raw: dict[str, Any]) -> dict[str, str]:
    """Coerce LLM output into idea fields; unknown phases fall back to the first phase."""
    return {
        "name": as_str(raw.get("name")) or "Untitled idea",
        "target_customer": as_str(raw.get("target_customer") or raw.get("targetCustomer")),
        "price_range": as_str(raw.get("price_range") or raw.get("priceRange")),
        "value": as_str(raw.get("value")),
        "competitors": as_str(raw.get("competitors")),
        "current_phase": coerce_phase(raw.get("current_phase") or raw.get("currentPhase")),
    }


def prepare_text(text: str, max_chars: int = MAX_TEXT_CHARS) -> str:
    """Clean pasted text for extraction. Raises IdeaImportError when empty or too long."""
    processed = preprocess_text(text)
    if not processed:
        raise IdeaImportError("Text is empty")
    if len(processed) > max_chars:
        raise IdeaImportError(f"Text is too long (max {max_chars:,} characters)")
    return processed


def prepare_pdf_text(data: bytes, max_chars: int = MAX_TEXT_CHARS) -> str:
    """Extract and clean PDF text, keeping only the first *max_chars* chunk."""
    processed = preprocess_text(pdf_to_text(data))
    if not processed:
        raise IdeaImportError("No text could be extracted from the PDF")
    chunks = split_text(processed, max_chars)
    if len(chunks) > 1:
        log.warning("PDF text is %d characters; only the first %d are analyzed", len(processed), max_chars)
    return chunks[0]


async def extract_idea(text: str, client: LLMClient) -> dict[str, str]:
    """Ask the LLM for idea fields in already prepared text."""
    raw = await client.call(EXTRACT_PROMPT, f"TEXT:\n{text}")
    info = normalize_extracted(raw)
    log.info("Extracted idea %r (phase %s)", info["name"], info["current_phase"])
    return info


async def extract_idea_from_text(
    text: str, client: LLMClient, max_chars: int = MAX_TEXT_CHARS,
) -> dict[str, str]:
    return await extract_idea(prepare_text(text, max_chars), client)


async def extract_idea_from_pdf(
    data: bytes, client: LLMClient, max_chars: int = MAX_TEXT_CHARS,
) -> dict[str, str]:
    return await extract_idea(prepare_pdf_text(data, max_chars), client)



def save_extracted_idea(session: Session, info: dict[str, str], user_id: int | None = None) -> Idea:
    """Persist an extracted idea with zero progress (caller must commit)."""
    now = datetime.now(UTC)
    idea = Idea(
        name=info["name"],
        target_customer=info["target_customer"],
        price_range=info["price_range"],
        value=info["value"],
        competitors=info["competitors"],
        current_phase=info["current_phase"],
        phase_progress_json=json.dumps(default_progress()),
        user_id=user_id,
        created_at=now,
        updated_at=now,
    )
    session.add(idea)
    session.flush()
    return idea
