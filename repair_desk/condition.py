from __future__ import annotations

from typing import Any, Literal, Mapping

Newness = Literal["new", "used", "unknown"]

NEW_MARKERS = ("nieuw", "nieuw in doos", "sealed", "ongebruikt", "new")
USED_MARKERS = ("gebruikt", "tweedehands", "refurb", "refurbished", "used", "b-grade", "c-grade")


def classify_newness(row: Mapping[str, Any]) -> Newness:
    """Guess whether a request concerns a new or a used device from its free text."""
    hay = " ".join(
        str(row[key]) for key in ("condition", "quality", "warranty", "notes", "issue") if row.get(key)
    ).lower()
    # "ongebruikt" contains "gebruikt", so new markers are checked first.
    if any(marker in hay for marker in NEW_MARKERS):
        return "new"
    if any(marker in hay for marker in USED_MARKERS):
        return "used"
    return "unknown"
