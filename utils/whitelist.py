"""Approved object names and map reconciliation."""

from __future__ import annotations

import csv
from collections.abc import Iterable
from pathlib import Path

from config import ConfigurationError
from logging_utils import get_logger

logger = get_logger(__name__)

WHITELIST_HEADER = "ServerName"


def load_whitelist(path: Path | str) -> set[str]:
    """Read the single-column whitelist CSV (header ``ServerName``).

    Values are trimmed and uppercased. Raises ConfigurationError when the file
    is missing, empty, has the wrong header, or holds no non-empty values.
    """

    p = Path(path)
    if not p.is_file():
        raise ConfigurationError(f"Whitelist file not found: {p}")

    # utf-8-sig: spreadsheet exports often start with a BOM.
    with open(p, "r", encoding="utf-8-sig", newline="") as f:
        reader = csv.reader(f)
        header = next(reader, None)
        if header is None:
            raise ConfigurationError(f"Whitelist file is empty: {p}")
        if not header or header[0].strip() != WHITELIST_HEADER:
            raise ConfigurationError(
                f"Whitelist file {p} must have the header '{WHITELIST_HEADER}' "
                f"(got {header[0].strip() if header else ''!r})"
            )
        names = {row[0].strip().upper() for row in reader if row and row[0].strip()}

    if not names:
        raise ConfigurationError(f"Whitelist file {p} has no server names")

    logger.info("Loaded %s whitelisted names from %s", len(names), p)
    return names


def reconcile_map(
    candidate_names: Iterable[str],
    whitelist: Iterable[str],
    existing_map_names: Iterable[str],
) -> set[str]:
    """Whitelisted candidates that the identity map does not hold yet.

    All comparisons are case-insensitive; returned names are uppercase.
    """

    allowed = {w.strip().upper() for w in whitelist if w and w.strip()}
    existing = {n.strip().upper() for n in existing_map_names if n}
    candidates = {c.strip().upper() for c in candidate_names if c and c.strip()}
    return (candidates & allowed) - existing
