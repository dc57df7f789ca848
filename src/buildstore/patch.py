"""Literal find/replace patching of in-memory files.

The find text comes from an AI response and may not reproduce the file's
whitespace exactly, so matching runs in two passes:

1. Exact: the first file containing the literal text gets its first
   occurrence replaced.
2. Normalized: whitespace runs are collapsed to single spaces for the
   containment check only; the edit itself is made on the original content
   with a pattern that accepts any whitespace run between tokens.

Neither pass raises. A miss returns a failed PatchResult and leaves every
file untouched.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from buildstore.core import FileRecord, PatchResult
from buildstore.parser import parse_patch_request

WHITESPACE_RUN = re.compile(r"\s+")

NOT_FOUND_ERROR = "Could not find the target text in any file"
EMPTY_FIND_ERROR = "Find text is empty"
UNPARSABLE_ERROR = "Could not parse PATCH format"


def normalize_whitespace(text: str) -> str:
    """Collapse every whitespace run to a single space."""
    return WHITESPACE_RUN.sub(" ", text)


def build_tolerant_pattern(find_text: str) -> Optional[re.Pattern[str]]:
    """Build a regex matching find_text with flexible whitespace.

    Each token is escaped literally; each whitespace run between tokens
    becomes ``\\s+``.
    """
    tokens = find_text.split()
    if not tokens:
        return None
    return re.compile(r"\s+".join(re.escape(token) for token in tokens))


def _candidates(files: Iterable[FileRecord], path: Optional[str]) -> list[FileRecord]:
    files = list(files)
    if path is None:
        return files
    named = [record for record in files if record.path == path]
    # A FILE line naming a file that does not exist falls back to every file.
    return named or files


def _apply_exact(
    find_text: str, replace_text: str, files: list[FileRecord]
) -> Optional[FileRecord]:
    for record in files:
        if find_text in record.content:
            return FileRecord(
                path=record.path,
                content=record.content.replace(find_text, replace_text, 1),
            )
    return None


def _apply_normalized(
    find_text: str, replace_text: str, files: list[FileRecord]
) -> Optional[FileRecord]:
    normalized_find = normalize_whitespace(find_text).strip()
    pattern = build_tolerant_pattern(find_text)
    if not normalized_find or pattern is None:
        return None

    for record in files:
        if normalized_find not in normalize_whitespace(record.content):
            continue
        # Replacement is literal text, not a template.
        new_content, count = pattern.subn(lambda _m: replace_text, record.content, count=1)
        if count:
            return FileRecord(path=record.path, content=new_content)
    return None


def apply_patch(
    find_text: str,
    replace_text: str,
    files: Iterable[FileRecord],
    path: Optional[str] = None,
) -> PatchResult:
    """Apply one literal find/replace to the first matching file.

    Args:
        find_text: Literal text to locate.
        replace_text: Literal replacement.
        files: Current files, searched in order.
        path: If given and present in files, only this file is considered.

    Returns:
        PatchResult with the single modified file, or a failure reason.
    """
    if not find_text or not find_text.strip():
        return PatchResult.failed(EMPTY_FIND_ERROR)

    candidates = _candidates(files, path)

    modified = _apply_exact(find_text, replace_text, candidates)
    if modified is not None:
        return PatchResult(success=True, modified_file=modified, method="exact")

    modified = _apply_normalized(find_text, replace_text, candidates)
    if modified is not None:
        return PatchResult(success=True, modified_file=modified, method="normalized")

    return PatchResult.failed(NOT_FOUND_ERROR)


def apply_patch_response(text: str, files: Iterable[FileRecord]) -> PatchResult:
    """Parse a PATCH response and apply it.

    Returns:
        PatchResult; a response without a FIND/REPLACE pair fails with
        "Could not parse PATCH format".
    """
    request = parse_patch_request(text)
    if request is None:
        return PatchResult.failed(UNPARSABLE_ERROR)
    return apply_patch(request.find_text, request.replace_text, files, path=request.path)
