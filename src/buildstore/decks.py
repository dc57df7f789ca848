"""Slide decks: best-effort slide extraction and JSON persistence.

Slide boundaries are found with regular expressions over generated HTML, not
a DOM parser, so extraction is tiered: a structural pattern first, then a
looser split on slide openings, then the whole document as a single slide.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from buildstore.core import FileRecord

if TYPE_CHECKING:
    from buildstore.store import BuildStore

logger = logging.getLogger(__name__)

DECKS_DIR = "boom-decks"

SlideLayout = Literal["title", "content", "image", "split", "blank"]

SLIDE_OPENING = r'<div\s+class="(?:[^"]*\s)?slide(?:\s[^"]*)?"[^>]*>'
SLIDE_PATTERN = re.compile(
    SLIDE_OPENING
    + r"(.*?)(?="
    + SLIDE_OPENING
    + r"|</div>\s*</div>\s*(?:<div\s+class=\"progress|<button|<script|$))",
    re.IGNORECASE | re.DOTALL,
)
SLIDE_SPLIT = re.compile(SLIDE_OPENING, re.IGNORECASE)
TRAILING_CLOSE = re.compile(r"\s*</div>\s*$")
HEADING_PATTERN = re.compile(r"<h[12][^>]*>(.*?)</h[12]>", re.IGNORECASE | re.DOTALL)
TAG_PATTERN = re.compile(r"<[^>]+>")
BODY_PATTERN = re.compile(r"<body[^>]*>(.*?)</body>", re.IGNORECASE | re.DOTALL)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


class Slide(BaseModel):
    """One slide of a deck."""

    id: str = Field(default_factory=_new_id)
    order: int = Field(..., ge=0)
    title: str
    content: str
    layout: SlideLayout = "content"


class Deck(BaseModel):
    """A slide deck as stored in the repository."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(default_factory=_new_id)
    name: str
    slug: str = Field(..., min_length=1)
    slides: list[Slide] = Field(default_factory=list)
    created_at: str = Field(default_factory=_now, alias="createdAt")
    updated_at: str = Field(default_factory=_now, alias="updatedAt")

    @property
    def path(self) -> str:
        return deck_path(self.slug)

    def to_file(self) -> FileRecord:
        content = json.dumps(self.model_dump(by_alias=True), indent=2)
        return FileRecord(path=self.path, content=content)


def deck_path(slug: str) -> str:
    return f"{DECKS_DIR}/{slug}.json"


def slugify(name: str) -> str:
    """Lowercase name with runs of other characters collapsed to dashes."""
    slug = re.sub(r"[^a-z0-9-]", "-", name.lower())
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def infer_layout(content: str, order: int) -> SlideLayout:
    """Guess a slide's layout from its markup."""
    if order == 0:
        return "title"
    if "<img" in content:
        return "image"
    if "grid" in content or "flex" in content or "columns" in content:
        return "split"
    if len(content.strip()) < 50:
        return "blank"
    return "content"


def _title_for(content: str, order: int) -> str:
    match = HEADING_PATTERN.search(content)
    if match:
        title = TAG_PATTERN.sub("", match.group(1)).strip()
        if title:
            return title
    return f"Slide {order + 1}"


def _make_slide(content: str, order: int) -> Slide:
    return Slide(
        order=order,
        title=_title_for(content, order),
        content=content,
        layout=infer_layout(content, order),
    )


def _split_slides(html: str) -> list[str]:
    parts = SLIDE_SPLIT.split(html)
    contents = []
    for content in parts[1:]:
        end = content.rfind("</div>")
        if end != -1:
            content = content[:end]
        contents.append(content.strip())
    return contents


def extract_slides(html: str) -> list[Slide]:
    """Extract slides from generated deck HTML.

    Never returns an empty list for non-empty input: when no slide markup is
    recognised, the document body (or the whole text) becomes one slide.
    """
    contents = []
    for match in SLIDE_PATTERN.finditer(html):
        content = TRAILING_CLOSE.sub("", match.group(1).strip()).strip()
        contents.append(content)

    if not contents:
        contents = _split_slides(html)

    if not contents:
        if not html.strip():
            return []
        body = BODY_PATTERN.search(html)
        contents = [(body.group(1) if body else html).strip()]
        logger.debug("No slide markup found; using whole document as one slide")

    return [_make_slide(content, order) for order, content in enumerate(contents)]


def html_to_deck(html: str, name: str) -> Deck:
    """Build a Deck from generated HTML."""
    return Deck(name=name, slug=slugify(name) or "deck", slides=extract_slides(html))


async def list_decks(store: BuildStore, ref: Optional[str] = None) -> list[Deck]:
    """Load every deck in the repository.

    Files that fail to parse are skipped with a warning.
    """
    snapshot = await store.fetch_tree(ref)
    decks = []
    for record in snapshot:
        if not (record.path.startswith(f"{DECKS_DIR}/") and record.path.endswith(".json")):
            continue
        try:
            decks.append(Deck.model_validate_json(record.content))
        except ValidationError as e:
            logger.warning("Skipping unreadable deck %s: %s", record.path, e)
    return decks


async def save_deck(store: BuildStore, deck: Deck, ref: Optional[str] = None) -> str:
    """Commit a deck and return the commit id."""
    deck.updated_at = _now()
    return await store.commit([deck.to_file()], f'feat: update deck "{deck.name}"', ref=ref)


async def delete_deck(store: BuildStore, slug: str, ref: Optional[str] = None) -> Optional[str]:
    """Delete a deck file.

    Returns:
        The commit id, or None if the deck did not exist.
    """
    path = deck_path(slug)
    if await store.reader.find_entry(ref or store.ref, path) is None:
        return None
    return await store.delete_file(path, f'chore: delete deck "{slug}"', ref=ref)
