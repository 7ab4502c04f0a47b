"""Object-name extraction and canonicalization.

Assessment exports describe the affected target of a finding as free text:
instance names, UNC-like paths, domain-qualified host names, user accounts,
log-file placeholders, several of them joined with ';'. This module reduces
that text to canonical server names (UPPERCASE, no domain, [A-Z0-9-] only).

Two canonicalization modes share one implementation:

- STRICT (the extractor, run over the raw export before the identity map is
  updated): a backslash only survives as ``SERVER\\C:\\path``; anything else
  with a backslash (``DOMAIN\\user``) is rejected, a bare drive letter is
  rejected, and an unrecognized dotted name is cut at the first dot.
- BULK (staging, run per staged row): colon then backslash truncation, both
  unconditional apart from the drive-letter colon, and only the configured
  domain suffix is stripped. Validity is then decided by
  `is_valid_object_name` plus membership in the identity map.

The extractor only feeds the identity map; staging only keeps names that the
map knows, so the looser BULK rules cannot admit a name that STRICT rejected
unless an operator whitelisted it.
"""

from __future__ import annotations

import re
import string
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

FRAGMENT_SEPARATOR = ";"
MIN_NAME_LENGTH = 3
FILE_MARKERS: tuple[str, ...] = (":file:", ";file:")

_HOSTNAME_RE = re.compile(r"^[A-Za-z0-9-]+$")
_QUOTE_CHARS = "\"'"


class CanonicalMode(str, Enum):
    STRICT = "strict"
    BULK = "bulk"


class RejectReason(str, Enum):
    TOO_SHORT = "too_short"
    IGNORED_KEYWORD = "ignored_keyword"
    FILE_MARKER = "file_marker"
    NOT_A_SERVER_PATH = "not_a_server_path"
    DRIVE_LETTER = "drive_letter"
    INVALID_CHARACTERS = "invalid_characters"
    DATABASE_NAME = "database_name"


@dataclass(frozen=True)
class CandidateName:
    """Outcome of evaluating one ';'-separated fragment."""

    raw: str
    normalized: str | None
    reason: RejectReason | None = None

    @property
    def accepted(self) -> bool:
        return self.reason is None


class _Rejected(Exception):
    def __init__(self, reason: RejectReason) -> None:
        super().__init__(reason.value)
        self.reason = reason


def _is_drive_spec(text: str) -> bool:
    """True for '<letter>:' (exactly two characters)."""
    return len(text) == 2 and text[0] in string.ascii_letters and text[1] == ":"


def looks_like_database_name(name: str) -> bool:
    """Names ending in 'DB' are database names, except the '...DBL' host pattern."""
    upper = name.upper()
    return upper.endswith("DB") and not upper.endswith("DBL")


def _strip_paths_strict(value: str) -> str:
    slash = value.find("\\")
    if slash >= 0:
        if not _is_drive_spec(value[slash + 1 : slash + 3]):
            raise _Rejected(RejectReason.NOT_A_SERVER_PATH)
        value = value[:slash].strip()

    colon = value.find(":")
    if colon == 1:
        raise _Rejected(RejectReason.DRIVE_LETTER)
    if colon >= 0:
        value = value[:colon].strip()
    return value


def _strip_paths_bulk(value: str) -> str:
    colon = value.find(":")
    if colon >= 0 and not (len(value) > 1 and value[1] == ":"):
        value = value[:colon].strip()

    slash = value.find("\\")
    if slash >= 0:
        value = value[:slash].strip()
    return value


def _strip_domain(value: str, domain_suffix: str | None, mode: CanonicalMode) -> str:
    if domain_suffix and value.lower().endswith(domain_suffix.lower()):
        return value[: len(value) - len(domain_suffix)].rstrip(".").strip()
    if mode is CanonicalMode.STRICT and "." in value:
        return value.split(".", 1)[0].strip()
    return value


def canonicalize(
    value: str | None,
    *,
    domain_suffix: str | None = None,
    mode: CanonicalMode = CanonicalMode.STRICT,
) -> str | None:
    """Reduce one target string to its server part, uppercased.

    STRICT returns None when the path rules reject the value. BULK never
    rejects; callers validate the result with `is_valid_object_name`.
    """

    text = (value or "").strip()
    try:
        if mode is CanonicalMode.STRICT:
            text = _strip_paths_strict(text)
        else:
            text = _strip_paths_bulk(text)
    except _Rejected:
        return None
    text = _strip_domain(text, domain_suffix, mode)
    return text.upper().strip()


def is_valid_object_name(name: str | None) -> bool:
    """Shape checks shared by the extractor and the staging invalidation."""

    if not name or len(name) < MIN_NAME_LENGTH:
        return False
    if not _HOSTNAME_RE.match(name):
        return False
    return not looks_like_database_name(name)


def _clean_fragment(fragment: str) -> str:
    return fragment.strip().strip(_QUOTE_CHARS).strip()


def evaluate_fragment(
    fragment: str,
    *,
    domain_suffix: str | None = None,
    ignore_keywords: Iterable[str] = (),
) -> CandidateName:
    """Run one fragment through the STRICT extraction rules."""

    keywords = {k.strip().lower() for k in ignore_keywords}
    text = _clean_fragment(fragment)

    if len(text) < MIN_NAME_LENGTH:
        return CandidateName(fragment, None, RejectReason.TOO_SHORT)
    if text.lower() in keywords:
        return CandidateName(fragment, None, RejectReason.IGNORED_KEYWORD)
    lowered = text.lower()
    if any(marker in lowered for marker in FILE_MARKERS):
        return CandidateName(fragment, None, RejectReason.FILE_MARKER)

    try:
        host = _strip_paths_strict(text)
    except _Rejected as r:
        return CandidateName(fragment, None, r.reason)
    host = _strip_domain(host, domain_suffix, CanonicalMode.STRICT)

    if not _HOSTNAME_RE.match(host):
        return CandidateName(fragment, None, RejectReason.INVALID_CHARACTERS)
    if looks_like_database_name(host):
        return CandidateName(fragment, None, RejectReason.DATABASE_NAME)
    # Re-checked on the final host so canonical names stay fixed points of
    # the extractor (e.g. 'none.corp.local' must not yield 'NONE').
    if len(host) < MIN_NAME_LENGTH:
        return CandidateName(fragment, None, RejectReason.TOO_SHORT)
    if host.lower() in keywords:
        return CandidateName(fragment, None, RejectReason.IGNORED_KEYWORD)

    return CandidateName(fragment, host.upper())


def extract_candidates(
    raw_field: str | None,
    *,
    domain_suffix: str | None = None,
    ignore_keywords: Iterable[str] = (),
) -> list[CandidateName]:
    """Evaluate every ';'-separated fragment of one affected-targets field."""

    if not raw_field:
        return []
    keywords = frozenset(k.strip().lower() for k in ignore_keywords)
    return [
        evaluate_fragment(f, domain_suffix=domain_suffix, ignore_keywords=keywords)
        for f in raw_field.split(FRAGMENT_SEPARATOR)
    ]


def extract_names(
    raw_field: str | None,
    domain_suffix: str | None = None,
    ignore_keywords: Iterable[str] = (),
) -> set[str]:
    """Return the set of canonical server names found in `raw_field`.

    Example:
        >>> sorted(extract_names("SRV01\\\\C:\\\\logs; sql02.corp.local:1433", ".corp.local"))
        ['SQL02', 'SRV01']
    """

    return {
        c.normalized
        for c in extract_candidates(
            raw_field, domain_suffix=domain_suffix, ignore_keywords=ignore_keywords
        )
        if c.accepted and c.normalized
    }


def extract_as_text(names: Iterable[str]) -> str:
    """Render extracted names back into a ';'-separated field."""
    return FRAGMENT_SEPARATOR.join(sorted(names))
