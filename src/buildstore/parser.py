"""Extraction of file records and patch requests from AI output.

Nothing in this module raises on bad input: unusable text yields an empty
list (or None for patches) so the caller can fall back to showing the raw
response.
"""

from __future__ import annotations

import re
from typing import Optional

from buildstore.core import FileRecord, PatchRequest

DEFAULT_DOCUMENT_PATH = "index.html"

# FILE: path, then an opening fence with an optional language tag
FILE_BLOCK_PATTERN = re.compile(
    r"FILE:[ \t]*([^\n]+?)\s*\n+\s*```([\w+.-]*)[^\n]*\n(.*?)```",
    re.DOTALL,
)
FENCED_BLOCK_PATTERN = re.compile(r"```[\w+.-]*[^\n]*\n(.*?)```", re.DOTALL)
DOCUMENT_ROOT_PATTERN = re.compile(r"^\s*(<!DOCTYPE\s+html|<html[\s>])", re.IGNORECASE)

PATCH_BLOCK_PATTERN = re.compile(
    r"PATCH:\s*```[^\n]*\n(.*?)```",
    re.DOTALL | re.IGNORECASE,
)
FIND_REPLACE_PATTERN = re.compile(
    r"FIND:[ \t]*\n?(.*?)\n?\s*REPLACE:[ \t]*\n?(.*?)(?:```|$)",
    re.DOTALL | re.IGNORECASE,
)
PATCH_FILE_PATTERN = re.compile(r"^\s*FILE:[ \t]*(\S[^\n]*?)\s*$", re.MULTILINE)


def clean_path(raw: str) -> str:
    """Normalize a path taken from a FILE marker.

    Strips whitespace, wrapping backticks or emphasis, and any leading slash.
    """
    path = raw.strip().strip("`*").strip()
    return path.lstrip("/")


def parse_generated_files(text: str) -> list[FileRecord]:
    """Parse freeform generation text into file records.

    Args:
        text: Fully assembled AI output.

    Returns:
        File records in the order they appear. Empty if nothing usable.
    """
    if not text:
        return []

    files = []
    for match in FILE_BLOCK_PATTERN.finditer(text):
        path = clean_path(match.group(1))
        content = match.group(3).strip()
        if path and content:
            files.append(FileRecord(path=path, content=content))

    if files:
        return files

    # Fallback: a bare fenced document with no FILE marker
    for match in FENCED_BLOCK_PATTERN.finditer(text):
        content = match.group(1).strip()
        if content and DOCUMENT_ROOT_PATTERN.match(content):
            return [FileRecord(path=DEFAULT_DOCUMENT_PATH, content=content)]

    return []


def dedupe_files(files: list[FileRecord]) -> list[FileRecord]:
    """Collapse repeated paths so the list can be committed as one snapshot.

    The last content for a path wins; the path keeps the position of its
    first occurrence.
    """
    latest: dict[str, str] = {}
    for record in files:
        latest[record.path] = record.content
    return [FileRecord(path=path, content=content) for path, content in latest.items()]


def parse_patch_request(text: str) -> Optional[PatchRequest]:
    """Parse a PATCH block into a PatchRequest.

    Accepts the fenced form::

        PATCH:
        ```
        FILE: index.html
        FIND:
        <old text>
        REPLACE:
        <new text>
        ```

    and a bare ``FIND: ... REPLACE: ...`` form. The FILE line is optional.

    Returns:
        The request, or None if the text holds no FIND/REPLACE pair.
    """
    if not text:
        return None

    block_match = PATCH_BLOCK_PATTERN.search(text)
    body = block_match.group(1) if block_match else text

    match = FIND_REPLACE_PATTERN.search(body)
    if not match:
        return None

    find_text = match.group(1).strip()
    replace_text = match.group(2).strip()
    if not find_text:
        return None

    path = None
    head = body[: match.start()]
    file_match = PATCH_FILE_PATTERN.search(head)
    if file_match:
        path = clean_path(file_match.group(1)) or None

    return PatchRequest(find_text=find_text, replace_text=replace_text, path=path)
